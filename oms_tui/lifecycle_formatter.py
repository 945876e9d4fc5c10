"""Agent log summaries and tagged log-line rendering.

Log events authored by an agent (they carry a role or an ``agentId``) are
collapsed into one-line summaries that depend on the role's rendering
style and the lifecycle keyword of the line. Tagged lines (``[tag] msg``,
``SOURCE: msg``, agent role, debug level) render with a bold tag column.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .colors import BOLD, FG, RESET, UNBOLD, agent_fg, lifecycle_fg
from .config import get_config
from .display_width import clip_text, visible_width
from .text_format import parse_json_record, preview_value, squash_whitespace, wrap_line

INLINE_TAG_RE = re.compile(r"^\[([^\]]+)\]\s*(.*)$", re.DOTALL)
UPPER_SOURCE_TAG_RE = re.compile(r"^([A-Z][A-Z0-9_-]*):\s*(.*)$", re.DOTALL)
TAG_GAP = 2

# Role rendering styles
DECISION = "decision"
IMPLEMENTATION = "implementation"
DEFAULT = "default"

ROLE_RENDERING: Dict[str, str] = {
    "singularity": DEFAULT,
    "issuer": DECISION,
    "steering": DECISION,
    "worker": IMPLEMENTATION,
    "designer-worker": IMPLEMENTATION,
    "finisher": IMPLEMENTATION,
}

# Message keywords mapped to lifecycle states, checked in order
_LIFECYCLE_KEYWORDS = (
    (("started", "requested spawn"), "started"),
    (("finished",), "finished"),
    (("paused",), "paused"),
    (("resumed",), "resumed"),
    (("stopped", "blocked"), "stopped"),
    (("interrupt",), "interrupt"),
    (("deferred",), "deferred"),
    (("skipped",), "skipped"),
)

_SNIPPET_SPLIT = re.compile(r"\s*(?:\|\s+|;\s+|\. )\s*")


def role_rendering(role: str) -> str:
    """Rendering style for a role; custom roles use the default style."""
    return ROLE_RENDERING.get(role, DEFAULT)


def _summary_max() -> int:
    return get_config().agent_summary_max_chars


def _clip_squashed(text: str) -> str:
    return clip_text(squash_whitespace(text), _summary_max())


def detail_value(value: Any) -> str:
    """Short single-line rendering of a payload field."""
    if value is None:
        return ""
    if isinstance(value, str):
        return _clip_squashed(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return preview_value(value, _summary_max())


def extract_agent_role(data: Optional[Dict[str, Any]]) -> Optional[str]:
    """Role from ``data.role`` or the ``role:`` prefix of ``data.agentId``."""
    if not data:
        return None
    role = data.get("role")
    if isinstance(role, str) and role:
        return role
    agent_id = data.get("agentId")
    if isinstance(agent_id, str) and agent_id:
        segment = agent_id.split(":")[0]
        if segment:
            return segment
    return None


def extract_lifecycle(data: Optional[Dict[str, Any]], message: str, level: str) -> str:
    """Lifecycle keyword from explicit data or message heuristics.

    "failed" is checked first so that "spawn failed" is not read as a start.
    """
    if data:
        explicit = data.get("lifecycle")
        if isinstance(explicit, str) and explicit:
            return explicit
    lower = message.lower()
    if "failed" in lower or level == "error":
        return "failed"
    for keywords, lifecycle in _LIFECYCLE_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return lifecycle
    if level == "warn":
        return "interrupt"
    return ""


@dataclass
class StartedMessage:
    started_by: str
    agent_id: str
    context: str


@dataclass
class FinishedMessage:
    agent_id: str
    summary: str


def _strip_closing_quote(text: str) -> str:
    return text[:-1].strip() if text.endswith('"') else text.strip()


def parse_started_message(message: str) -> Optional[StartedMessage]:
    """Parse ``<by> started <agentId>[ with "<context>"]``."""
    marker = " started "
    index = message.find(marker)
    if index <= 0:
        return None
    started_by = message[:index].strip()
    rest = message[index + len(marker):].strip()
    if not started_by or not rest:
        return None

    with_marker = ' with "'
    with_index = rest.find(with_marker)
    if with_index < 0:
        return StartedMessage(started_by, rest, "")
    agent_id = rest[:with_index].strip()
    if not agent_id:
        return None
    context = _strip_closing_quote(rest[with_index + len(with_marker):])
    return StartedMessage(started_by, agent_id, context)


def parse_finished_message(message: str) -> Optional[FinishedMessage]:
    """Parse ``<agentId> finished with "<summary>"``."""
    marker = ' finished with "'
    index = message.find(marker)
    if index <= 0:
        return None
    agent_id = message[:index].strip()
    if not agent_id:
        return None
    return FinishedMessage(agent_id, _strip_closing_quote(message[index + len(marker):]))


def summary_snippets(summary: str, max_lines: int = 3) -> List[str]:
    """Split a free-form summary into at most ``max_lines`` clipped snippets."""
    clean = squash_whitespace(summary)
    if not clean:
        return []
    parts = [part.strip() for part in _SNIPPET_SPLIT.split(clean) if part.strip()]
    source = parts if len(parts) > 1 else [clean]
    return [clip_text(part, _summary_max()) for part in source[:max_lines]]


def _field(data: Optional[Dict[str, Any]], key: str) -> str:
    return detail_value(data.get(key)) if data else ""


def format_agent_log_summary(
    role: str,
    lifecycle: str,
    level: str,
    message: str,
    data: Optional[Dict[str, Any]],
) -> str:
    """One-line summary for an agent-authored log line.

    Args:
        role: Agent role.
        lifecycle: Lifecycle keyword from extract_lifecycle().
        level: Log level.
        message: Raw log message.
        data: Structured payload of the log event, if any.

    Returns:
        ``start <agent> for <task> — <context>`` for starts,
        ``<action> <agent> for <task> — <detail>`` for decision-role finishes,
        ``done <agent> for <task> — <snippets>`` for implementation-role
        finishes, or the message itself.
    """
    safe_message = message or level
    task_id = _field(data, "taskId") or "(none)"
    data_agent_id = _field(data, "agentId")
    rendering = role_rendering(role)

    if lifecycle == "started" and rendering in (DECISION, IMPLEMENTATION):
        started = parse_started_message(safe_message)
        agent_id = (started.agent_id if started else "") or data_agent_id or f"{role}:?"
        context = (
            (detail_value(started.context) if started else "")
            or _field(data, "context")
            or _clip_squashed(safe_message)
        )
        return f"start {agent_id} for {task_id} — {context}"

    if lifecycle == "finished" and rendering == DECISION:
        finished = parse_finished_message(safe_message)
        summary = finished.summary if finished else ""
        decision = parse_json_record(summary) if summary else None
        agent_id = (finished.agent_id if finished else "") or data_agent_id or f"{role}:?"
        action = _field(decision, "action") or "finish"
        decision_task = _field(decision, "taskId") or task_id
        reason = _field(decision, "reason") or _field(data, "reason")
        decision_message = _field(decision, "message") or _field(data, "message")
        raw = _clip_squashed(summary) if summary and decision is None else ""
        detail = reason or decision_message or raw or _clip_squashed(safe_message)
        if raw and detail != raw:
            detail = f"{detail}; {raw}"
        return f"{action} {agent_id} for {decision_task} — {detail}"

    if lifecycle == "finished" and rendering == IMPLEMENTATION:
        finished = parse_finished_message(safe_message)
        snippets = summary_snippets(finished.summary if finished else "", 3)
        agent_id = (finished.agent_id if finished else "") or data_agent_id or f"{role}:?"
        changes = "; ".join(snippets) if snippets else "(no assistant output)"
        return f"done {agent_id} for {task_id} — {changes}"

    return safe_message


def format_data_backed_log_summary(
    message: str, level: str, data: Optional[Dict[str, Any]]
) -> str:
    """Summary for system log lines that reference a task in their payload."""
    safe_message = message or level
    task_id = _field(data, "taskId")
    if not task_id:
        return safe_message

    lower = safe_message.lower()
    if "issuer skipped" in lower or "issuer deferred" in lower:
        action = "skip"
    elif "broadcast steer" in lower or "broadcast interrupt" in lower:
        action = "steer"
    else:
        return safe_message
    reason = _field(data, "reason") or _clip_squashed(safe_message)
    return f"{action} {task_id} — {reason}"


@dataclass
class TaggedText:
    tag: str
    message: str
    tag_color: str
    message_color: str


def parse_inline_tag(text: str) -> Optional[tuple]:
    """Split ``[tag] message`` or ``SOURCE: message`` into (tag, message)."""
    for pattern in (INLINE_TAG_RE, UPPER_SOURCE_TAG_RE):
        match = pattern.match(text)
        if match:
            tag = match.group(1).strip()
            if tag:
                return tag, match.group(2)
    return None


def derive_tagged_text(block: Any) -> Optional[TaggedText]:
    """Tag and colors for a text block, or None when it renders untagged.

    Agent log lines are tagged with their role. Dim, warn and error lines
    are tagged by an inline tag or, failing that, a debug log level.
    """
    style = getattr(block, "style", "")
    text = getattr(block, "text", "")

    if style == "agentLog":
        role = (block.role or "").strip()
        if not role:
            return None
        message_color = lifecycle_fg(block.lifecycle) if block.lifecycle else FG.dim
        return TaggedText(role, text, agent_fg(role), message_color)

    if style not in ("dim", "warn", "error"):
        return None
    message_color = {"error": FG.error, "warn": FG.warning}.get(style, FG.dim)

    inline = parse_inline_tag(text)
    if inline:
        return TaggedText(inline[0], inline[1], message_color, message_color)

    level = (getattr(block, "level", None) or "").strip().lower()
    if level == "debug":
        return TaggedText("DEBUG", text, message_color, message_color)
    return None


def render_tagged_text_lines(
    tagged: TaggedText, width: int, tag_content_width: int, tag_gap: int = TAG_GAP
) -> List[str]:
    """Render a bold ``[tag]`` column followed by the wrapped message.

    Continuation rows are indented under the message column.
    """
    if width <= 0 or tag_content_width <= 0:
        return []
    # Brackets, gap and at least one message column must fit
    tag_content_width = min(tag_content_width, max(1, width - 3 - tag_gap))
    tag = clip_text(tagged.tag, tag_content_width)
    padding = " " * max(0, tag_content_width - visible_width(tag))
    tag_prefix = (
        f"{tagged.tag_color}{BOLD}[{tag}{padding}]{UNBOLD}{RESET}" + " " * tag_gap
    )
    prefix_width = tag_content_width + 2 + tag_gap
    content_width = max(1, width - prefix_width)
    wrapped = wrap_line(tagged.message, content_width)
    indent = " " * prefix_width
    return [
        f"{tag_prefix if i == 0 else indent}{tagged.message_color}{line}{RESET}"
        for i, line in enumerate(wrapped)
    ]


def max_tagged_text_width(blocks: Iterable[Any]) -> int:
    """Widest tag among the text blocks, for a shared tag column."""
    widest = 0
    for block in blocks:
        if getattr(block, "kind", None) != "text" or not isinstance(block.text, str):
            continue
        tagged = derive_tagged_text(block)
        if tagged:
            widest = max(widest, visible_width(tagged.tag))
    return widest
