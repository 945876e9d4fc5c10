"""Tests for streamed tool-call argument accumulation."""

from oms_tui.tool_args import Buffering, Parsed, ToolArgsBuffer, deep_merge, parse_json_fragment


class TestParseJsonFragment:
    """Tests for parse_json_fragment."""

    def test_complete_document(self):
        assert parse_json_fragment('{"a": 1}') == Parsed({"a": 1})

    def test_partial_document(self):
        assert parse_json_fragment('{"a": ') == Buffering('{"a": ')

    def test_blank_is_buffering(self):
        assert isinstance(parse_json_fragment("   "), Buffering)


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_dicts_merge(self):
        merged = deep_merge({"a": {"x": 1}, "b": 1}, {"a": {"y": 2}})
        assert merged == {"a": {"x": 1, "y": 2}, "b": 1}

    def test_lists_replace(self):
        assert deep_merge({"labels": ["a"]}, {"labels": ["b"]}) == {"labels": ["b"]}

    def test_inputs_not_mutated(self):
        base = {"a": {"x": 1}}
        fragment = {"a": {"y": 2}}
        deep_merge(base, fragment)
        assert base == {"a": {"x": 1}}
        assert fragment == {"a": {"y": 2}}


class TestToolArgsBuffer:
    """Tests for ToolArgsBuffer."""

    def test_object_fragments_merge(self):
        buffer = ToolArgsBuffer()
        buffer.merge({"action": "create"})
        buffer.merge({"title": "X"})
        assert buffer.data == {"action": "create", "title": "X"}
        assert not buffer.is_buffering

    def test_text_fragments_parse_when_complete(self):
        buffer = ToolArgsBuffer()
        buffer.merge('{"action":"create","title":"A"')
        assert buffer.is_buffering
        assert buffer.data == {}
        buffer.merge("}")
        assert not buffer.is_buffering
        assert buffer.data == {"action": "create", "title": "A"}

    def test_other_types_ignored(self):
        buffer = ToolArgsBuffer()
        buffer.merge(42)
        buffer.merge(None)
        assert buffer.data == {}
        assert buffer.raw == ""

    def test_finalize_with_object(self):
        buffer = ToolArgsBuffer(data={"a": 1})
        buffer.finalize({"b": 2})
        assert buffer.data == {"a": 1, "b": 2}

    def test_finalize_string_replaces_partial_buffer(self):
        buffer = ToolArgsBuffer()
        buffer.merge('{"path": "/tm')
        buffer.finalize('{"path": "/tmp/x"}')
        assert not buffer.is_buffering
        assert buffer.data == {"path": "/tmp/x"}

    def test_finalize_undecodable_string_kept_raw(self):
        buffer = ToolArgsBuffer()
        buffer.finalize("not json at all")
        assert buffer.is_buffering
        assert buffer.raw == "not json at all"

    def test_finalize_undecodable_keeps_existing_buffer(self):
        buffer = ToolArgsBuffer()
        buffer.merge('{"a": ')
        buffer.finalize("garbage")
        assert buffer.raw == '{"a": '
