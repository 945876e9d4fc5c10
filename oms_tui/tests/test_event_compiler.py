"""Tests for folding event logs into render blocks."""

from oms_tui.blocks import (
    AGENT_LOG,
    ASSISTANT,
    DIM,
    ERROR,
    FAILED,
    PENDING,
    STATUS,
    SUCCESS,
    THINKING,
    USER,
    WARN,
    SeparatorBlock,
    TextBlock,
    ToolBlock,
)
from oms_tui.event_compiler import EventBlockCompiler, build_render_blocks, extract_message_text


def rpc(data):
    return {"type": "rpc", "data": data}


def assistant(**event):
    return rpc({"type": "message_update", "assistantMessageEvent": event})


def tool_blocks(blocks):
    return [b for b in blocks if isinstance(b, ToolBlock)]


class TestTextStreams:
    """Tests for assistant and thinking text accumulation."""

    def test_deltas_accumulate_into_one_block(self):
        blocks = build_render_blocks([
            assistant(type="text_start"),
            assistant(type="text_delta", delta="hello"),
            assistant(type="text_delta", delta=" world"),
        ])
        assert blocks == [TextBlock(ASSISTANT, "hello world")]

    def test_text_end_closes_stream(self):
        blocks = build_render_blocks([
            assistant(type="text_delta", delta="one"),
            assistant(type="text_end"),
            assistant(type="text_delta", delta="two"),
        ])
        assert [b.text for b in blocks] == ["one", "two"]

    def test_text_end_without_stream_uses_content(self):
        blocks = build_render_blocks([assistant(type="text_end", content="full text")])
        assert blocks == [TextBlock(ASSISTANT, "full text")]

    def test_thinking_is_separate_stream(self):
        blocks = build_render_blocks([
            assistant(type="thinking_delta", delta="hmm"),
            assistant(type="thinking_delta", delta="..."),
            assistant(type="text_delta", delta="answer"),
        ])
        assert blocks == [TextBlock(THINKING, "hmm..."), TextBlock(ASSISTANT, "answer")]

    def test_switching_stream_kind_closes_the_other(self):
        blocks = build_render_blocks([
            assistant(type="thinking_start"),
            assistant(type="thinking_delta", delta="think1"),
            assistant(type="text_start"),
            assistant(type="text_delta", delta="answer"),
            assistant(type="thinking_delta", delta=" think2"),
            assistant(type="text_delta", delta=" more"),
        ])
        assert [(b.style, b.text) for b in blocks] == [
            (THINKING, "think1"),
            (ASSISTANT, "answer"),
            (THINKING, " think2"),
            (ASSISTANT, " more"),
        ]

    def test_control_characters_are_removed(self):
        blocks = build_render_blocks([assistant(type="text_delta", delta="a\x07b\x1b[31mc")])
        assert "\x07" not in blocks[0].text
        assert "\x1b" not in blocks[0].text

    def test_error_event_closes_streams(self):
        blocks = build_render_blocks([
            assistant(type="text_delta", delta="partial"),
            assistant(type="error", reason="overloaded"),
            assistant(type="text_delta", delta="retry"),
        ])
        assert blocks[1] == TextBlock(ERROR, "error: overloaded")
        assert blocks[2] == TextBlock(ASSISTANT, "retry")


class TestTurnsAndMessages:
    """Tests for turn separators and user prompts."""

    def test_consecutive_turn_starts_make_one_separator(self):
        blocks = build_render_blocks([
            rpc({"type": "turn_start", "turnIndex": 0}),
            rpc({"type": "turn_start", "turnIndex": 1}),
        ])
        assert blocks == [SeparatorBlock("Turn 1")]

    def test_turn_label_without_index(self):
        assert build_render_blocks([rpc({"type": "turn_start"})]) == [SeparatorBlock("Turn")]

    def test_user_prompt_block(self):
        blocks = build_render_blocks([
            rpc({"type": "message_start", "message": {"role": "user", "content": "do it"}}),
            rpc({"type": "message_end", "message": {"role": "user", "content": "do it"}}),
        ])
        assert blocks == [TextBlock(USER, "Input: do it")]

    def test_message_end_fills_empty_start(self):
        blocks = build_render_blocks([
            rpc({"type": "message_start", "message": {"role": "user"}}),
            rpc({
                "type": "message_end",
                "message": {"role": "user", "content": [{"type": "text", "text": "late"}]},
            }),
        ])
        assert blocks == [TextBlock(USER, "Input: late")]

    def test_assistant_messages_ignored(self):
        blocks = build_render_blocks([
            rpc({"type": "message_start", "message": {"role": "assistant", "content": "x"}}),
        ])
        assert blocks == []

    def test_interruption_splits_assistant_text(self):
        blocks = build_render_blocks([
            assistant(type="text_delta", delta="before"),
            rpc({"type": "message_start", "message": {"role": "user", "content": "stop"}}),
            assistant(type="text_delta", delta="after"),
        ])
        assert [b.text for b in blocks] == ["before", "Input: stop", "after"]

    def test_extract_message_text(self):
        content = [{"type": "input_text", "text": "a"}, {"type": "image"}, {"type": "text", "text": "b"}]
        assert extract_message_text(content) == "a\nb"
        assert extract_message_text(None) == ""


class TestToolCallStreaming:
    """Tests for streamed tool-call construction."""

    def test_object_fragments_merge(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_start", toolCall={"id": "c1", "name": "tasks", "arguments": {"action": "create"}}),
            assistant(type="toolcall_delta", arguments={"title": "X"}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.state == PENDING
        assert block.args_data == {"action": "create", "title": "X"}
        assert block.args_preview == "create X"

    def test_string_fragments_parse_when_complete(self):
        compiler = EventBlockCompiler()
        compiler.feed(assistant(type="toolcall_start", toolCall={"id": "c1", "name": "tasks"}))
        compiler.feed(assistant(type="toolcall_delta", toolCallId="c1", delta='{"action":"create","title":"A"'))
        (block,) = tool_blocks(compiler.blocks)
        assert block.args_data == {}
        assert block.args_raw == '{"action":"create","title":"A"'

        compiler.feed(assistant(type="toolcall_delta", toolCallId="c1", delta="}"))
        assert block.args_data == {"action": "create", "title": "A"}
        assert block.args_raw == ""

    def test_undecodable_arguments_shown_raw_at_end(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_start", toolCall={"id": "c1", "name": "bash"}),
            assistant(type="toolcall_delta", delta='{"command": "ls'),
            assistant(type="toolcall_end", toolCall={"id": "c1", "name": "bash"}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.args_complete
        assert block.args_raw == '{"command": "ls'
        assert block.args_preview == ""

    def test_id_first_seen_on_delta_is_adopted(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_start", toolCall={"name": "bash"}),
            assistant(type="toolcall_delta", toolCallId="c9", delta='{"command":"ls"}'),
            assistant(type="toolcall_end", toolCall={"id": "c9"}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.call_id == "c9"
        assert block.tool_name == "bash"
        assert block.args_preview == "ls"
        assert block.args_complete

    def test_call_without_id_uses_active_call(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_start", toolCall={"name": "read"}),
            assistant(type="toolcall_delta", arguments={"path": "/tmp/a"}),
            assistant(type="toolcall_end", toolCall={"id": "late-id", "name": "read"}),
            rpc({"type": "tool_execution_end", "toolCallId": "late-id", "result": "ok"}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.call_id == "late-id"
        assert block.args_preview == "/tmp/a"
        assert block.state == SUCCESS

    def test_end_without_start_creates_block(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_end", toolCall={"id": "c9", "name": "grep", "arguments": {"pattern": "x"}}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.args_preview == "x"
        assert block.args_complete


class TestToolExecution:
    """Tests for tool execution correlation."""

    def test_one_card_per_call(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_start", toolCall={"id": "c1", "name": "bash"}),
            assistant(type="toolcall_end", toolCall={"id": "c1", "name": "bash", "arguments": {"command": "ls"}}),
            rpc({"type": "tool_execution_start", "toolCallId": "c1", "toolName": "bash", "args": {"command": "ls"}}),
            rpc({
                "type": "tool_execution_end",
                "toolCallId": "c1",
                "toolName": "bash",
                "result": {"content": [{"type": "text", "text": "file.txt"}]},
            }),
        ])
        (block,) = tool_blocks(blocks)
        assert block.state == SUCCESS
        assert block.result_content == "file.txt"

    def test_execution_without_stream(self):
        blocks = build_render_blocks([
            rpc({"type": "tool_execution_start", "toolCallId": "x", "toolName": "fetch", "args": {"url": "http://a"}}),
            rpc({"type": "tool_execution_update", "toolCallId": "x", "partialResult": "50%"}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.args_preview == "http://a"
        assert block.result_content == "50%"
        assert block.state == PENDING

    def test_error_with_empty_content(self):
        blocks = build_render_blocks([
            rpc({"type": "tool_execution_start", "toolCallId": "e", "toolName": "bash"}),
            rpc({"type": "tool_execution_end", "toolCallId": "e", "isError": True, "result": {"content": []}}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.state == FAILED
        assert block.result_preview == ""
        assert block.result_content == ""

    def test_is_error_must_be_true(self):
        blocks = build_render_blocks([
            rpc({"type": "tool_execution_end", "toolCallId": "e", "isError": "yes", "result": "x"}),
        ])
        assert tool_blocks(blocks)[0].state == SUCCESS

    def test_unkeyed_call_claimed_by_execution(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_start", toolCall={"name": "bash"}),
            assistant(type="toolcall_delta", delta='{"command":"ls"}'),
            assistant(type="toolcall_end"),
            rpc({"type": "tool_execution_start", "toolCallId": "c9", "toolName": "bash"}),
            rpc({"type": "tool_execution_end", "toolCallId": "c9", "result": "file.txt"}),
        ])
        (block,) = tool_blocks(blocks)
        assert block.call_id == "c9"
        assert block.args_preview == "ls"
        assert block.result_content == "file.txt"
        assert block.state == SUCCESS

    def test_unkeyed_call_claimed_only_once(self):
        blocks = build_render_blocks([
            assistant(type="toolcall_start", toolCall={"name": "bash"}),
            assistant(type="toolcall_end"),
            rpc({"type": "tool_execution_end", "toolCallId": "a", "result": "one"}),
            rpc({"type": "tool_execution_end", "toolCallId": "b", "result": "two"}),
        ])
        assert [b.call_id for b in tool_blocks(blocks)] == ["a", "b"]

    def test_reused_id_after_end_opens_new_card(self):
        events = [
            rpc({"type": "tool_execution_start", "toolCallId": "r", "toolName": "bash"}),
            rpc({"type": "tool_execution_end", "toolCallId": "r", "result": "one"}),
            rpc({"type": "tool_execution_start", "toolCallId": "r", "toolName": "bash"}),
        ]
        assert len(tool_blocks(build_render_blocks(events))) == 2


class TestLogAndStatus:
    """Tests for log, status and diagnostic events."""

    def test_plain_log_levels(self):
        blocks = build_render_blocks([
            {"type": "log", "level": "info", "message": "hello"},
            {"type": "log", "level": "warn", "message": "careful"},
            {"type": "log", "level": "error", "message": "broken"},
        ])
        assert [(b.style, b.text) for b in blocks] == [(DIM, "hello"), (WARN, "careful"), (ERROR, "broken")]

    def test_agent_log_summary(self):
        blocks = build_render_blocks([{
            "type": "log",
            "level": "info",
            "message": 'worker:1 finished with "added parser. wrote tests"',
            "data": {"agentId": "worker:1", "taskId": "T-1"},
        }])
        (block,) = blocks
        assert block.style == AGENT_LOG
        assert block.role == "worker"
        assert block.lifecycle == "finished"
        assert block.text == "done worker:1 for T-1 — added parser; wrote tests"

    def test_status(self):
        (block,) = build_render_blocks([{"type": "status", "status": "running", "note": "3 agents"}])
        assert block.style == STATUS
        assert block.text == "running: 3 agents"

    def test_process_diagnostics(self):
        blocks = build_render_blocks([
            rpc({"type": "rpc_exit", "exitCode": 2}),
            rpc({"type": "rpc_parse_error", "error": "bad line"}),
        ])
        assert blocks == [TextBlock(WARN, "process exited (2)"), TextBlock(ERROR, "parse error: bad line")]

    def test_bare_payload_treated_as_rpc(self):
        assert build_render_blocks([{"type": "turn_start", "turnIndex": 4}]) == [SeparatorBlock("Turn 5")]


class TestMalformedInput:
    """The compiler must never raise."""

    def test_garbage_events_are_dropped(self):
        events = [
            None,
            42,
            "text",
            [],
            {},
            {"type": "rpc"},
            {"type": "rpc", "data": "nope"},
            rpc({"type": "message_update", "assistantMessageEvent": None}),
            rpc({"type": "tool_execution_end"}),
            rpc({"type": "unknown_kind"}),
            assistant(type="toolcall_delta", delta=None),
            rpc({"type": "agent_start"}),
        ]
        blocks = build_render_blocks(events)
        assert all(not isinstance(b, TextBlock) or b.style != ASSISTANT for b in blocks)

    def test_later_events_survive_malformed_ones(self):
        blocks = build_render_blocks([
            rpc({"type": "message_update", "assistantMessageEvent": {"type": "text_delta", "delta": 5}}),
            assistant(type="text_delta", delta="ok"),
        ])
        assert blocks[-1].text == "ok"
