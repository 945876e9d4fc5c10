"""Task issue styling and structured rendering of ``tasks`` tool results.

The ``tasks`` tool answers with ``tasks <action>: ok`` followed by a JSON
payload (also available as ``result.details``). Known actions render as a
compact table, a bordered field card, or a comment list instead of raw JSON.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from .colors import BOLD, BOX_CHARS, ELLIPSIS, FG, RESET, RESET_FG
from .config import get_config
from .display_width import clip_text, pad_to_width, visible_width
from .text_format import as_record, squash_whitespace, wrap_line

TASKS_TOOL = "tasks"

LIST_ACTIONS = frozenset(("list", "search", "ready", "query"))
ISSUE_ACTIONS = frozenset(("show", "create", "update", "close"))
COMMENT_ACTIONS = frozenset(("comments",))

_RESULT_HEADER_RE = re.compile(r"^tasks\s+([\w-]+):\s*ok\b[^\n]*(?:\n([\s\S]*))?$")

_STATUS_COLORS = {
    "closed": FG.success,
    "done": FG.success,
    "complete": FG.success,
    "completed": FG.success,
    "in_progress": FG.warning,
    "in-progress": FG.warning,
    "running": FG.warning,
    "working": FG.warning,
    "started": FG.warning,
    "blocked": FG.error,
    "dead": FG.error,
    "failed": FG.error,
    "aborted": FG.error,
    "stuck": FG.error,
    "deferred": FG.warning,
    "paused": FG.warning,
    "open": FG.border,
}

ID_COLUMN_MAX = 20
STATUS_COLUMN_MAX = 12


def format_issue_status(status: Any) -> str:
    return status if isinstance(status, str) else "(unknown)"


def issue_status_color(status: Any) -> str:
    normalized = status.strip().lower() if isinstance(status, str) else ""
    return _STATUS_COLORS.get(normalized, FG.muted)


def format_issue_status_styled(status: Any) -> str:
    return f"{issue_status_color(status)}{format_issue_status(status)}{RESET}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def format_priority_text(priority: Any) -> str:
    if priority is None:
        return "?"
    if _is_number(priority) and float(priority).is_integer():
        return str(int(priority))
    return str(priority)


def format_issue_priority(priority: Any) -> str:
    """Priority colored by urgency: 0 bold red, 1 bold yellow, 2 accent, else dim."""
    text = format_priority_text(priority)
    if not _is_number(priority):
        return f"{FG.muted}{text}{RESET}"
    if priority <= 0:
        return f"{BOLD}{FG.error}{text}{RESET}"
    if priority <= 1:
        return f"{BOLD}{FG.warning}{text}{RESET}"
    if priority <= 2:
        return f"{FG.accent}{text}{RESET}"
    return f"{FG.dim}{text}{RESET}"


def parse_tasks_result(
    text: str, result_data: Any, args: Optional[Dict[str, Any]] = None
) -> Optional[Tuple[str, Any]]:
    """Extract (action, payload) from a ``tasks`` tool result.

    Args:
        text: Extracted result text.
        result_data: Raw result object (``details`` is preferred when present).
        args: Call arguments, used for the action when the text has none.

    Returns:
        The action name and decoded payload, or None when there is no payload.
    """
    action = ""
    payload: Any = None

    match = _RESULT_HEADER_RE.match(text.strip()) if text else None
    if match:
        action = match.group(1)
        body = (match.group(2) or "").strip()
        if body:
            try:
                payload = json.loads(body)
            except ValueError:
                payload = None

    details = as_record(result_data).get("details") if as_record(result_data) else None
    if isinstance(details, (dict, list)):
        payload = details

    if not action and args:
        candidate = args.get("action")
        action = candidate if isinstance(candidate, str) else ""

    if not action or payload is None:
        return None
    return action, payload


def _issue_list(payload: Any) -> Optional[List[Dict[str, Any]]]:
    if isinstance(payload, dict):
        for key in ("issues", "items", "results"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
    if not isinstance(payload, list):
        return None
    return [item for item in payload if isinstance(item, dict)]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return squash_whitespace(value)
    return squash_whitespace(str(value))


def render_issue_table(issues: List[Dict[str, Any]], width: int) -> List[str]:
    """Compact ``id status prio title`` rows with a pagination notice."""
    if width <= 0:
        return []
    if not issues:
        return [f"{FG.dim}(no issues){RESET_FG}"]

    limit = max(1, get_config().structured_max_lines)
    shown = issues[:limit]
    id_width = min(ID_COLUMN_MAX, max(visible_width(_cell(i.get("id"))) for i in shown))
    status_width = min(
        STATUS_COLUMN_MAX, max(visible_width(format_issue_status(i.get("status"))) for i in shown)
    )
    prio_width = 3
    title_width = max(0, width - id_width - status_width - prio_width - 3)

    lines = []
    for issue in shown:
        issue_id = pad_to_width(clip_text(_cell(issue.get("id")), id_width), id_width)
        status = format_issue_status(issue.get("status"))
        status_cell = pad_to_width(clip_text(status, status_width), status_width)
        prio_cell = pad_to_width(format_issue_priority(issue.get("priority")), prio_width)
        title = clip_text(_cell(issue.get("title")), title_width) if title_width else ""
        lines.append(
            f"{FG.accent}{issue_id}{RESET} "
            f"{issue_status_color(status)}{status_cell}{RESET} "
            f"{prio_cell} {title}".rstrip()
        )

    hidden = len(issues) - len(shown)
    if hidden > 0:
        lines.append(f"{FG.dim}{ELLIPSIS} {hidden} more (showing {len(shown)}){RESET_FG}")
    return lines


_CARD_FIELDS = (
    ("id", "id"),
    ("title", "title"),
    ("status", "status"),
    ("priority", "priority"),
    ("labels", "labels"),
    ("depends on", "depends_on_ids"),
    ("assignee", "assignee"),
)


def _card_value(key: str, issue: Dict[str, Any]) -> str:
    value = issue.get(key)
    if key == "depends_on_ids" and value is None:
        value = issue.get("dependsOnIds")
    if isinstance(value, list):
        return ", ".join(_cell(v) for v in value)
    if key == "status":
        return format_issue_status_styled(value) if value is not None else ""
    if key == "priority":
        return format_issue_priority(value) if value is not None else ""
    return _cell(value)


def render_issue_card(issue: Dict[str, Any], width: int) -> List[str]:
    """Bordered ``label: value`` card for a single issue."""
    if width < 6:
        return []
    h = BOX_CHARS["horizontal"]
    v = BOX_CHARS["vertical"]
    inner = width - 4
    label_width = max(len(label) for label, _ in _CARD_FIELDS) + 1

    rows: List[str] = []
    for label, key in _CARD_FIELDS:
        value = _card_value(key, issue)
        if not value:
            continue
        label_text = f"{label}:".ljust(label_width)
        value_width = max(1, inner - label_width - 1)
        wrapped = wrap_line(value, value_width) or [""]
        for i, part in enumerate(wrapped):
            head = f"{FG.dim}{label_text}{RESET_FG}" if i == 0 else " " * label_width
            rows.append(f"{head} {part}")

    top = f"{FG.dim}{BOX_CHARS['top_left']}{h * (width - 2)}{BOX_CHARS['top_right']}{RESET_FG}"
    bottom = f"{FG.dim}{BOX_CHARS['bottom_left']}{h * (width - 2)}{BOX_CHARS['bottom_right']}{RESET_FG}"
    body = [
        f"{FG.dim}{v}{RESET_FG} {pad_to_width(row, inner)}{RESET} {FG.dim}{v}{RESET_FG}"
        for row in rows
    ]
    return [top, *body, bottom]


def render_comments(comments: List[Any], width: int) -> List[str]:
    """One wrapped ``author: text`` entry per comment."""
    lines: List[str] = []
    for comment in comments:
        record = as_record(comment)
        if not record:
            continue
        author = _cell(record.get("author")) or "?"
        text = _cell(record.get("text"))
        wrapped = wrap_line(f"{author}: {text}", width)
        if not wrapped:
            continue
        first = wrapped[0]
        if first.startswith(author):
            first = f"{FG.accent}{author}{RESET_FG}{FG.muted}{first[len(author):]}{RESET_FG}"
        lines.append(first)
        lines.extend(f"{FG.muted}{row}{RESET_FG}" for row in wrapped[1:])
    return lines or [f"{FG.dim}(no comments){RESET_FG}"]


def render_tasks_result(action: str, payload: Any, width: int) -> Optional[List[str]]:
    """Structured body lines for a ``tasks`` result, or None if not recognized."""
    if width <= 0:
        return None
    if action in LIST_ACTIONS:
        issues = _issue_list(payload)
        return render_issue_table(issues, width) if issues is not None else None
    if action in ISSUE_ACTIONS:
        issue = as_record(payload)
        if issue is None or not isinstance(issue.get("id"), str):
            return None
        return render_issue_card(issue, width) or None
    if action in COMMENT_ACTIONS:
        comments = payload.get("comments") if isinstance(payload, dict) else payload
        return render_comments(comments, width) if isinstance(comments, list) else None
    return None
