"""Fold an ordered event log into render blocks.

Events are loosely typed dicts. Top-level ``log`` and ``status`` events
become text blocks; ``rpc`` events wrap an agent protocol payload in
``data`` (any other top-level type is treated as a bare payload):

    turn_start / turn_end                  turn separators, user-input reset
    message_start / message_end            user prompts and interruptions
    message_update.assistantMessageEvent   text, thinking and tool-call streams
    tool_execution_start/_update/_end      tool results, correlated by call id
    rpc_exit / rpc_parse_error             process diagnostics

The compiler never raises for malformed input: unknown shapes are dropped
and a handler failure only affects the event that caused it.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .blocks import (
    AGENT_LOG,
    ASSISTANT,
    DIM,
    ERROR,
    FAILED,
    STATUS,
    SUCCESS,
    THINKING,
    USER,
    WARN,
    Block,
    SeparatorBlock,
    SYNTHETIC_ID_PREFIX,
    StreamState,
    TextBlock,
    ToolBlock,
    ToolCallState,
    push_block,
)
from .colors import lifecycle_fg
from .lifecycle_formatter import (
    extract_agent_role,
    extract_lifecycle,
    format_agent_log_summary,
    format_data_backed_log_summary,
)
from .text_format import as_record, get_str, sanitize_chunk, squash_whitespace
from .tool_args import Parsed, ToolArgsBuffer
from .tool_renderer import extract_result_text, format_tool_args, format_tool_result_preview

logger = logging.getLogger(__name__)

_SUPPRESSED_RPC_TYPES = frozenset(("agent_start", "agent_end"))
_TOOL_EXECUTION_TYPES = frozenset(
    ("tool_execution_start", "tool_execution_update", "tool_execution_end")
)


def extract_message_text(content: Any) -> str:
    """Text of a message's content: a string or a list of text parts."""
    if isinstance(content, str):
        return sanitize_chunk(content)
    if not isinstance(content, list):
        return ""
    parts = []
    for item in content:
        record = as_record(item)
        if not record:
            continue
        if record.get("type") in ("text", "input_text") and isinstance(record.get("text"), str):
            clean = sanitize_chunk(record["text"])
            if clean:
                parts.append(clean)
    return "\n".join(parts)


def format_user_prompt_text(content: str) -> str:
    return f"Input: {content}"


def _refresh_args(block: ToolBlock, buffer: ToolArgsBuffer) -> None:
    """Copy accumulated arguments into the block and rebuild its preview.

    A buffer still undecodable once the call is complete is left to the
    card body, which shows it verbatim.
    """
    block.args_data = dict(buffer.data)
    block.args_raw = buffer.raw if buffer.is_buffering else ""
    if buffer.data:
        block.args_preview = format_tool_args(block.tool_name, buffer.data)
    elif block.args_raw and block.args_complete:
        block.args_preview = ""
    elif buffer.raw:
        block.args_preview = squash_whitespace(buffer.raw)


class EventBlockCompiler:
    """Stateful compiler for one pass over an event sequence.

    Use ``compile()`` for a whole log, or ``feed()`` event by event followed
    by ``blocks``. Compilation is O(events); callers re-run it on a fresh
    instance rather than resuming, so prior blocks are never reinterpreted.
    """

    def __init__(self):
        self.blocks: List[Block] = []
        self.state = StreamState()

    def compile(self, events: Sequence[Any]) -> List[Block]:
        for event in events:
            self.feed(event)
        return self.blocks

    def feed(self, event: Any) -> None:
        """Apply one event. Malformed events are logged at debug and skipped."""
        record = as_record(event)
        if record is None:
            return
        try:
            self._dispatch(record)
        except Exception:
            logger.debug(f"Dropped malformed event of type {record.get('type')!r}", exc_info=True)

    # ---- Top-level dispatch ----

    def _dispatch(self, record: Dict[str, Any]) -> None:
        event_type = record.get("type")
        if event_type == "log":
            self._handle_log(record)
        elif event_type == "status":
            self._handle_status(record)
        elif event_type == "rpc":
            inner = as_record(record.get("data"))
            if inner is not None:
                self._handle_rpc(inner)
        else:
            self._handle_rpc(record)

    def _push(self, block: Block) -> int:
        return push_block(self.blocks, block)

    def _handle_log(self, record: Dict[str, Any]) -> None:
        level = get_str(record, "level", "log") or "log"
        message = get_str(record, "message")
        data = as_record(record.get("data"))
        role = extract_agent_role(data)
        text = message or level

        if role:
            lifecycle = extract_lifecycle(data, text, level)
            summary = format_agent_log_summary(role, lifecycle, level, text, data)
            self._push(TextBlock(AGENT_LOG, summary, role=role, lifecycle=lifecycle, level=level))
            return

        style = ERROR if level == "error" else WARN if level == "warn" else DIM
        summary = format_data_backed_log_summary(text, level, data)
        self._push(TextBlock(style, summary, level=level))

    def _handle_status(self, record: Dict[str, Any]) -> None:
        status = get_str(record, "status")
        note = get_str(record, "note")
        text = f"{status}: {note}" if note else status
        self._push(TextBlock(STATUS, text, color=lifecycle_fg(status)))

    # ---- Agent protocol payloads ----

    def _handle_rpc(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        if not isinstance(event_type, str) or event_type in _SUPPRESSED_RPC_TYPES:
            return

        if event_type in ("message_start", "message_end"):
            self._handle_user_message(event_type, event)
        elif event_type == "turn_end":
            self.state.user_input_index = None
        elif event_type == "turn_start":
            self._handle_turn_start(event)
        elif event_type == "message_update":
            inner = as_record(event.get("assistantMessageEvent"))
            if inner is not None:
                self._handle_assistant_event(inner)
        elif event_type in _TOOL_EXECUTION_TYPES:
            self._handle_tool_execution(event_type, event)
        elif event_type == "rpc_exit":
            code = event.get("exitCode")
            code_text = str(code) if isinstance(code, int) and not isinstance(code, bool) else "?"
            self._push(TextBlock(WARN, f"process exited ({code_text})"))
        elif event_type == "rpc_parse_error":
            error = get_str(event, "error", "parse error")
            self._push(TextBlock(ERROR, f"parse error: {error}"))
        else:
            logger.debug(f"Ignoring event type {event_type!r}")

    def _handle_turn_start(self, event: Dict[str, Any]) -> None:
        if self.blocks and isinstance(self.blocks[-1], SeparatorBlock):
            return
        index = event.get("turnIndex")
        if isinstance(index, (int, float)) and not isinstance(index, bool):
            label = f"Turn {int(index) + 1}"
        else:
            label = "Turn"
        self._push(SeparatorBlock(label))

    def _handle_user_message(self, event_type: str, event: Dict[str, Any]) -> None:
        message = as_record(event.get("message")) or {}
        role = message.get("role")
        if role is not None and role != "user":
            return

        content = extract_message_text(message.get("content"))
        has_content = bool(content.strip())
        state = self.state

        if event_type == "message_start":
            state.close_text_streams()
            text = format_user_prompt_text(content) if has_content else ""
            state.user_input_index = self._push(TextBlock(USER, text))
            return

        if state.user_input_index is not None:
            block = self.blocks[state.user_input_index]
            if isinstance(block, TextBlock) and block.style == USER and has_content:
                block.text = format_user_prompt_text(content)
            state.user_input_index = None
            return

        if has_content:
            state.close_text_streams()
            self._push(TextBlock(USER, format_user_prompt_text(content)))

    # ---- Assistant text and thinking ----

    def _ensure_text_block(self, index: Optional[int], style: str) -> int:
        if index is not None and isinstance(self.blocks[index], TextBlock):
            return index
        return self._push(TextBlock(style))

    def _append_text(self, index: Optional[int], chunk: Any, style: str) -> int:
        clean = sanitize_chunk(chunk)
        if not clean:
            return self._ensure_text_block(index, style)
        if index is not None:
            block = self.blocks[index]
            if isinstance(block, TextBlock):
                block.text += clean
                return index
        return self._push(TextBlock(style, clean))

    def _handle_assistant_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        state = self.state

        if event_type == "text_start":
            state.thinking_index = None
            state.assistant_index = self._ensure_text_block(state.assistant_index, ASSISTANT)
        elif event_type == "text_delta":
            state.thinking_index = None
            state.assistant_index = self._append_text(state.assistant_index, event.get("delta"), ASSISTANT)
        elif event_type == "text_end":
            if state.assistant_index is None:
                content = event.get("content")
                if isinstance(content, str) and content:
                    self._append_text(None, content, ASSISTANT)
            state.assistant_index = None
        elif event_type == "thinking_start":
            state.assistant_index = None
            state.thinking_index = self._ensure_text_block(state.thinking_index, THINKING)
        elif event_type == "thinking_delta":
            state.assistant_index = None
            state.thinking_index = self._append_text(state.thinking_index, event.get("delta"), THINKING)
        elif event_type == "thinking_end":
            if state.thinking_index is None:
                content = event.get("content")
                if isinstance(content, str) and content:
                    self._append_text(None, content, THINKING)
            state.thinking_index = None
        elif event_type == "toolcall_start":
            self._handle_toolcall_start(event)
        elif event_type == "toolcall_delta":
            self._handle_toolcall_delta(event)
        elif event_type == "toolcall_end":
            self._handle_toolcall_end(event)
        elif event_type == "done":
            state.close_text_streams()
        elif event_type == "error":
            reason = get_str(event, "reason", "?") or "?"
            self._push(TextBlock(ERROR, f"error: {reason}"))
            state.close_text_streams()

    # ---- Streamed tool-call construction ----

    @staticmethod
    def _explicit_call_id(event: Dict[str, Any]) -> Optional[str]:
        tool_call = as_record(event.get("toolCall"))
        for source, key in ((tool_call, "id"), (event, "toolCallId"), (event, "callId")):
            value = source.get(key) if source else None
            if isinstance(value, str) and value:
                return value
        return None

    @staticmethod
    def _tool_name(event: Dict[str, Any], default: str = "?") -> str:
        tool_call = as_record(event.get("toolCall"))
        name = get_str(tool_call, "name") or get_str(event, "toolName")
        return name or default

    @staticmethod
    def _merge_fragments(buffer: ToolArgsBuffer, event: Dict[str, Any]) -> None:
        """Merge the argument fragments one streaming event carries."""
        tool_call = as_record(event.get("toolCall"))
        delta = event.get("delta")
        if isinstance(delta, (str, dict)):
            buffer.merge(delta)
        elif isinstance(event.get("arguments"), str):
            buffer.merge(event["arguments"])
        elif tool_call and isinstance(tool_call.get("arguments"), str):
            buffer.merge(tool_call["arguments"])

        for source in (event, tool_call):
            if source and isinstance(source.get("arguments"), dict):
                buffer.merge(source["arguments"])

    def _open_tool_call(self, call_id: str, name: str) -> ToolCallState:
        block = ToolBlock(tool_name=name, call_id=call_id)
        entry = ToolCallState(self._push(block), name)
        self.state.tool_calls[call_id] = entry
        self.state.active_call_id = call_id
        return entry

    def _tool_block(self, entry: ToolCallState) -> Optional[ToolBlock]:
        block = self.blocks[entry.block_index]
        return block if isinstance(block, ToolBlock) else None

    def _adopt_unkeyed_call(self, call_id: str) -> Optional[ToolCallState]:
        """Re-key the streaming unkeyed call to an id seen for the first time."""
        state = self.state
        active = state.active_call_id
        if not active or not active.startswith(SYNTHETIC_ID_PREFIX):
            return None
        entry = state.tool_calls.pop(active, None)
        if entry is None:
            return None
        state.tool_calls[call_id] = entry
        state.active_call_id = call_id
        block = self._tool_block(entry)
        if block is not None:
            block.call_id = call_id
        return entry

    def _handle_toolcall_start(self, event: Dict[str, Any]) -> None:
        state = self.state
        call_id = self._explicit_call_id(event) or state.next_synthetic_id()
        name = self._tool_name(event)
        entry = state.tool_calls.get(call_id) or self._open_tool_call(call_id, name)
        state.active_call_id = call_id
        self._merge_fragments(entry.args, event)
        block = self._tool_block(entry)
        if block is not None:
            if block.tool_name == "?" and name != "?":
                block.tool_name = entry.tool_name = name
            _refresh_args(block, entry.args)

    def _handle_toolcall_delta(self, event: Dict[str, Any]) -> None:
        state = self.state
        explicit_id = self._explicit_call_id(event)
        call_id = explicit_id or state.active_call_id
        entry = state.tool_calls.get(call_id) if call_id else None
        if entry is None and explicit_id:
            entry = self._adopt_unkeyed_call(explicit_id)
        if entry is None:
            entry = self._open_tool_call(call_id or state.next_synthetic_id(), self._tool_name(event))
        self._merge_fragments(entry.args, event)
        block = self._tool_block(entry)
        if block is not None:
            name = self._tool_name(event)
            if block.tool_name == "?" and name != "?":
                block.tool_name = entry.tool_name = name
            _refresh_args(block, entry.args)

    def _handle_toolcall_end(self, event: Dict[str, Any]) -> None:
        state = self.state
        explicit_id = self._explicit_call_id(event)
        call_id = explicit_id or state.active_call_id
        entry = state.tool_calls.pop(call_id, None) if call_id else None
        if entry is None and explicit_id and self._adopt_unkeyed_call(explicit_id) is not None:
            entry = state.tool_calls.pop(explicit_id)
        if state.active_call_id is not None and state.active_call_id == call_id:
            state.active_call_id = None

        tool_call = as_record(event.get("toolCall"))
        final_args = tool_call.get("arguments") if tool_call else None
        if final_args is None:
            final_args = event.get("arguments")

        if entry is None:
            entry = ToolCallState(
                self._push(ToolBlock(tool_name=self._tool_name(event), call_id=explicit_id)),
                self._tool_name(event),
            )
        entry.args.finalize(final_args)

        block = self._tool_block(entry)
        if block is not None:
            name = self._tool_name(event, block.tool_name)
            block.tool_name = entry.tool_name = name
            block.args_complete = True
            _refresh_args(block, entry.args)
            if explicit_id:
                block.call_id = explicit_id

        if explicit_id:
            state.tool_exec[explicit_id] = entry
        else:
            state.unkeyed_exec = entry

    # ---- Tool execution lifecycle ----

    def _tracked_call(self, call_id: Optional[str]) -> Optional[ToolCallState]:
        """Execution tracking entry for an id, promoting a still-streaming call."""
        if not call_id:
            return None
        state = self.state
        entry = state.tool_exec.get(call_id)
        if entry is None and call_id in state.tool_calls:
            entry = state.tool_calls.pop(call_id)
            state.tool_exec[call_id] = entry
            if state.active_call_id == call_id:
                state.active_call_id = None
        elif entry is None and state.unkeyed_exec is not None:
            entry, state.unkeyed_exec = state.unkeyed_exec, None
            state.tool_exec[call_id] = entry
            block = self._tool_block(entry)
            if block is not None:
                block.call_id = call_id
        if entry is not None and self._tool_block(entry) is None:
            return None
        return entry

    def _handle_tool_execution(self, event_type: str, event: Dict[str, Any]) -> None:
        call_id = get_str(event, "toolCallId") or None
        entry = self._tracked_call(call_id)
        tool_name = get_str(event, "toolName") or (entry.tool_name if entry else "?")

        if event_type == "tool_execution_start":
            self._tool_execution_start(call_id, entry, tool_name, event)
        elif event_type == "tool_execution_update":
            self._tool_execution_update(call_id, entry, tool_name, event)
        else:
            self._tool_execution_end(call_id, entry, tool_name, event)

    def _new_execution_block(self, call_id: Optional[str], tool_name: str) -> ToolCallState:
        block = ToolBlock(tool_name=tool_name, call_id=call_id, args_complete=True)
        entry = ToolCallState(self._push(block), tool_name)
        if call_id:
            self.state.tool_exec[call_id] = entry
        return entry

    def _tool_execution_start(
        self,
        call_id: Optional[str],
        entry: Optional[ToolCallState],
        tool_name: str,
        event: Dict[str, Any],
    ) -> None:
        if entry is None:
            entry = self._new_execution_block(call_id, tool_name)
        block = self._tool_block(entry)
        args = event.get("args")
        if isinstance(args, dict):
            entry.args.data = dict(args)
            entry.args.result = Parsed(args)
        elif args is not None:
            entry.args.finalize(args)
        block.args_complete = True
        if block.tool_name == "?":
            block.tool_name = tool_name
        if isinstance(args, dict):
            _refresh_args(block, entry.args)
        elif args is not None:
            block.args_preview = format_tool_args(block.tool_name, args)

    def _tool_execution_update(
        self,
        call_id: Optional[str],
        entry: Optional[ToolCallState],
        tool_name: str,
        event: Dict[str, Any],
    ) -> None:
        partial_result = event.get("partialResult")
        partial_text = extract_result_text(partial_result)
        partial = partial_text or format_tool_result_preview(partial_result, 100)

        if entry is None:
            entry = self._new_execution_block(call_id, tool_name)
        block = self._tool_block(entry)
        if isinstance(event.get("args"), dict):
            entry.args.merge(event["args"])
            _refresh_args(block, entry.args)
        block.result_content = partial_text
        block.result_preview = "" if partial_text else (partial or "…")
        block.result_data = partial_result

    def _tool_execution_end(
        self,
        call_id: Optional[str],
        entry: Optional[ToolCallState],
        tool_name: str,
        event: Dict[str, Any],
    ) -> None:
        is_error = event.get("isError") is True
        result = event.get("result")
        result_text = extract_result_text(result)
        preview = result_text or format_tool_result_preview(result, 200)

        if entry is None:
            entry = ToolCallState(self._push(ToolBlock(tool_name=tool_name, call_id=call_id)), tool_name)
        block = self._tool_block(entry)
        if isinstance(event.get("args"), dict):
            entry.args.merge(event["args"])
            _refresh_args(block, entry.args)
        block.result_content = result_text
        block.result_preview = "" if result_text else preview
        block.result_data = result
        block.state = FAILED if is_error else SUCCESS
        block.args_complete = True

        if call_id:
            self.state.tool_exec.pop(call_id, None)
            self.state.tool_calls.pop(call_id, None)


def build_render_blocks(events: Sequence[Any]) -> List[Block]:
    """Compile an event log into blocks with a fresh compiler."""
    return EventBlockCompiler().compile(events)
