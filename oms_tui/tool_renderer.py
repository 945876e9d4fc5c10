"""Tool invocation cards.

A card is a bordered, background-tinted box whose colors follow the call
state. The header carries the tool name and a short argument preview; the
body shows, in order of preference, streaming arguments field by field,
a structured rendering of a recognized result, or the plain result text.
Arguments that were still undecodable when the call closed are shown
verbatim above the result.
"""

import re
from typing import Any, Dict, List

from .blocks import FAILED, PENDING, ToolBlock
from .colors import BG, BOLD, BOX_CHARS, ELLIPSIS, FG, ICON, RESET, RESET_FG, UNBOLD
from .config import get_config
from .display_width import clip_ansi, clip_text, visible_width
from .task_format import TASKS_TOOL, parse_tasks_result, render_tasks_result
from .text_format import (
    as_record,
    preview_value,
    sanitize_renderable_text,
    squash_whitespace,
    to_json,
    try_format_json,
    wrap_line,
)

CAP_LEN = 3
MIN_CARD_WIDTH = 8
ARGS_PREVIEW_MAX = 80

# Tools whose arguments and results get structured rendering
STRUCTURED_TOOLS = frozenset((TASKS_TOOL,))

# Field order for streaming argument previews; other fields follow alphabetically
ARG_FIELD_PRIORITY = (
    "action",
    "id",
    "title",
    "status",
    "priority",
    "type",
    "labels",
    "depends_on",
    "assignee",
    "scope",
    "query",
    "reason",
    "description",
    "acceptance_criteria",
    "text",
)

_PROXY_PREFIX = re.compile(r"^proxy_")

_STATE_STYLE = {
    PENDING: (FG.accent, BG.tool_pending, ICON["pending"]),
    FAILED: (FG.error, BG.tool_error, ICON["error"]),
}
_SUCCESS_STYLE = (FG.dim, BG.tool_success, ICON["success"])


def base_tool_name(tool_name: str) -> str:
    return _PROXY_PREFIX.sub("", tool_name)


def extract_result_text(result: Any) -> str:
    """Text content of a ``{content: [{type: "text", text}]}`` result.

    Each text part is pretty-printed when it holds JSON. A bare string
    result is returned sanitized; any other shape yields "".
    """
    record = as_record(result)
    if record is None:
        if isinstance(result, str):
            return sanitize_renderable_text(try_format_json(result) or result)
        return ""
    content = record.get("content")
    parts = []
    for item in content if isinstance(content, list) else []:
        part = as_record(item)
        if part and part.get("type") == "text" and isinstance(part.get("text"), str):
            parts.append(sanitize_renderable_text(try_format_json(part["text"]) or part["text"]))
    return "\n".join(parts)


def format_tool_result_preview(value: Any, max_width: int = 200) -> str:
    """Best-effort preview of a result that has no text content.

    A ``{content: [...]}`` result without text parts has no preview.
    """
    record = as_record(value)
    if record is not None and isinstance(record.get("content"), list):
        return ""
    if isinstance(value, str):
        normalized = sanitize_renderable_text(value)
        return try_format_json(normalized) or preview_value(normalized, max_width)
    if isinstance(value, (dict, list)) and value:
        try:
            return to_json(value, indent=2)
        except (TypeError, ValueError):
            return preview_value(value, max_width)
    return preview_value(value, max_width)


def _string_field(args: Dict[str, Any], key: str) -> str:
    value = args.get(key)
    return value if isinstance(value, str) else ""


def _format_tasks_args(args: Dict[str, Any]) -> str:
    action = _string_field(args, "action")
    if not action:
        return preview_value(args, ARGS_PREVIEW_MAX)
    parts = [action]
    for key in ("id", "title"):
        value = args.get(key)
        if isinstance(value, (str, int, float)) and not isinstance(value, bool) and value != "":
            parts.append(squash_whitespace(str(value)))
    return clip_text(" ".join(parts), ARGS_PREVIEW_MAX)


def format_tool_args(tool_name: str, args: Any) -> str:
    """Header preview of a call's arguments, picking the most useful field."""
    record = as_record(args)
    if record is None:
        return preview_value(args, ARGS_PREVIEW_MAX)

    base = base_tool_name(tool_name)
    fallback = preview_value(args, ARGS_PREVIEW_MAX)
    if base in ("read", "edit", "write"):
        return _string_field(record, "path") or fallback
    if base in ("grep", "find"):
        return _string_field(record, "pattern") or fallback
    if base == "bash":
        command = _string_field(record, "command")
        return clip_text(squash_whitespace(command), ARGS_PREVIEW_MAX) if command else fallback
    if base == "fetch":
        url = _string_field(record, "url")
        return clip_text(url, ARGS_PREVIEW_MAX) if url else fallback
    if base == "web_search":
        return _string_field(record, "query") or fallback
    if base in ("lsp", "notebook"):
        return _string_field(record, "action") or fallback
    if base == "python":
        return "(code)"
    if base == "task":
        description = _string_field(record, "description")
        return clip_text(description, ARGS_PREVIEW_MAX) if description else fallback
    if base == TASKS_TOOL:
        return _format_tasks_args(record)
    return fallback


def _ordered_fields(args: Dict[str, Any]) -> List[str]:
    known = [key for key in ARG_FIELD_PRIORITY if key in args]
    rest = sorted(key for key in args if key not in ARG_FIELD_PRIORITY)
    return known + rest


def _field_text(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(v if isinstance(v, str) else to_json(v) for v in value)
    if isinstance(value, str):
        return value
    return to_json(value)


def format_streaming_args_lines(args: Dict[str, Any], width: int) -> List[str]:
    """Field-by-field preview of arguments received so far.

    Each field renders as a dim ``name:`` label followed by its value;
    long values wrap with a hanging indent under the label.
    """
    lines: List[str] = []
    if width <= 0:
        return lines
    for key in _ordered_fields(args):
        text = sanitize_renderable_text(_field_text(args[key]))
        label = f"{key}: "
        indent = visible_width(label)
        if indent >= width:
            indent = 0
        value_width = max(1, width - indent)
        wrapped = wrap_line(text, value_width) or [""]
        for i, part in enumerate(wrapped):
            head = f"{FG.dim}{label}{RESET_FG}" if i == 0 and indent else " " * indent
            lines.append(f"{head}{FG.muted}{part}{RESET_FG}")
    return lines


def _truncate_lines(lines: List[str], max_lines: int) -> List[str]:
    if len(lines) <= max_lines:
        return lines
    hidden = len(lines) - max_lines
    return lines[:max_lines] + [f"{FG.dim}{ELLIPSIS} {hidden} more lines{RESET_FG}"]


def _structured_body(block: ToolBlock, content_width: int) -> List[str]:
    if base_tool_name(block.tool_name) not in STRUCTURED_TOOLS:
        return []
    if not block.args_complete and block.args_data and not block.has_result:
        return _truncate_lines(
            format_streaming_args_lines(block.args_data, content_width),
            get_config().structured_max_lines,
        )
    if block.state == FAILED or not block.has_result:
        return []
    parsed = parse_tasks_result(block.result_content or block.result_preview, block.result_data, block.args_data)
    if parsed is None:
        return []
    return render_tasks_result(parsed[0], parsed[1], content_width) or []


def _raw_args_body(block: ToolBlock) -> List[str]:
    """Arguments that never decoded, one row per source line, unwrapped."""
    if not (block.args_complete and block.args_raw):
        return []
    raw = sanitize_renderable_text(block.args_raw)
    return [f"{FG.dim}{line}{RESET_FG}" for line in raw.split("\n")]


def _plain_body(block: ToolBlock, content_width: int) -> List[str]:
    raw_text = block.result_content or block.result_preview
    display_text = sanitize_renderable_text(try_format_json(raw_text) or raw_text) if raw_text else ""
    if not display_text:
        if block.state == PENDING:
            return []
        placeholder = "(error; no output)" if block.state == FAILED else "(no output)"
        color = FG.error if block.state == FAILED else FG.dim
        return [f"{color}{placeholder}{RESET_FG}"]

    text_color = FG.error if block.state == FAILED else FG.muted
    wrapped = wrap_line(display_text, content_width)
    body = [f"{text_color}{line}{RESET_FG}" for line in wrapped]
    return _truncate_lines(body, get_config().result_max_lines)


def render_tool_block_lines(block: ToolBlock, width: int) -> List[str]:
    """Render a tool card exactly ``width`` columns wide.

    Cards narrower than MIN_CARD_WIDTH are not drawn.
    """
    if width < MIN_CARD_WIDTH:
        return []

    border_fg, bg, icon = _STATE_STYLE.get(block.state, _SUCCESS_STYLE)
    h = BOX_CHARS["horizontal"]
    cap = h * CAP_LEN

    def bordered(text: str) -> str:
        return f"{border_fg}{text}{RESET_FG}"

    args_preview = block.args_preview
    if not args_preview and block.args_raw and not block.args_complete:
        args_preview = squash_whitespace(block.args_raw)
    args_clipped = clip_text(args_preview, max(0, width - 25)) if args_preview else ""
    args_str = (
        f" {FG.dim}{ICON['dot']}{RESET_FG} {FG.dim}{args_clipped}{RESET_FG}" if args_clipped else ""
    )
    label = f" {icon} {BOLD}{block.tool_name}{UNBOLD}{args_str} "
    label = clip_ansi(label, max(0, width - CAP_LEN - 2))
    top_fill = max(0, width - CAP_LEN - 2 - visible_width(label))
    top = (
        f"{bordered(BOX_CHARS['top_left'] + cap)}{label}"
        f"{bordered(h * top_fill)}{bordered(BOX_CHARS['top_right'])}"
    )

    content_width = max(1, width - 3)
    body = _raw_args_body(block) + (
        _structured_body(block, content_width) or _plain_body(block, content_width)
    )
    content_lines = []
    for line in body:
        clipped = clip_ansi(line, content_width)
        pad = " " * max(0, content_width - visible_width(clipped))
        content_lines.append(
            f"{bordered(BOX_CHARS['vertical'] + ' ')}{clipped}{pad}{bordered(BOX_CHARS['vertical'])}"
        )

    bottom = bordered(
        BOX_CHARS["bottom_left"] + cap + h * max(0, width - CAP_LEN - 2) + BOX_CHARS["bottom_right"]
    )

    card = []
    for line in [top, *content_lines, bottom]:
        clipped = clip_ansi(line, width)
        pad = " " * max(0, width - visible_width(clipped))
        # Full resets inside the content would drop the card background
        card.append(f"{bg}{clipped.replace(RESET, RESET + bg)}{pad}{RESET}")
    return card
