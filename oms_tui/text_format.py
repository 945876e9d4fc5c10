"""Text helpers shared by the event compiler and the renderers.

Sanitizing streamed chunks, unwrapping JSON embedded in strings, and
building short single-line previews of arbitrary values.
"""

import json
import re
from typing import Any, Dict, List, Optional

from .display_width import clip_text, wrap_ansi_text

# Control characters other than \t and \n
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
_WHITESPACE_RUN = re.compile(r"\s+")
_JSON_FENCE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)

# Embedded JSON strings are unwrapped at most this many times
JSON_UNWRAP_DEPTH = 2


def sanitize_renderable_text(value: str) -> str:
    """Strip carriage returns and control characters, expand tabs to two spaces."""
    value = value.replace("\r", "").replace("\t", "  ")
    return _CONTROL_CHARS.sub("", value)


def sanitize_chunk(value: Any) -> str:
    """Sanitize a streamed chunk; non-strings become the empty string."""
    if not isinstance(value, str):
        return ""
    return sanitize_renderable_text(value)


def squash_whitespace(value: str) -> str:
    """Collapse whitespace runs to single spaces and trim."""
    return _WHITESPACE_RUN.sub(" ", value).strip()


def as_record(value: Any) -> Optional[Dict[str, Any]]:
    """Return ``value`` if it is a dict, else None."""
    return value if isinstance(value, dict) else None


def get_str(record: Optional[Dict[str, Any]], key: str, default: str = "") -> str:
    """Read a string field from a loosely-typed record."""
    if record is None:
        return default
    value = record.get(key)
    return value if isinstance(value, str) else default


def to_json(value: Any, indent: Optional[int] = None) -> str:
    """Serialize like JSON.stringify: compact by default, never raises.

    Non-serializable leaves are rendered with ``str()``.
    """
    if indent is None:
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
    return json.dumps(value, ensure_ascii=False, indent=indent, default=str)


def preview_value(value: Any, max_width: int = 120) -> str:
    """Single-line, whitespace-squashed, clipped preview of any value."""
    if value is None:
        return ""
    if isinstance(value, str):
        raw = value
    else:
        try:
            raw = to_json(value)
        except (TypeError, ValueError):
            raw = "[value]"
    return clip_text(squash_whitespace(raw), max_width)


def try_format_json(text: str) -> Optional[str]:
    """Pretty-print JSON embedded in text, unwrapping quoted JSON strings.

    Accepts an optional ```json fence around the payload. A JSON string
    whose content is itself JSON is unwrapped up to JSON_UNWRAP_DEPTH times.

    Args:
        text: Candidate text.

    Returns:
        Indented JSON for objects and arrays, or None when the text is not
        structured JSON (any parse failure falls back to None).
    """
    candidate = text.strip()
    if not candidate:
        return None

    fenced = _JSON_FENCE.match(candidate)
    if fenced:
        candidate = fenced.group(1).strip()

    for _ in range(JSON_UNWRAP_DEPTH):
        if not candidate.startswith(("{", "[", '"')):
            return None
        try:
            parsed = json.loads(candidate)
        except ValueError:
            return None
        if isinstance(parsed, str):
            candidate = parsed.strip()
            continue
        if isinstance(parsed, (dict, list)):
            return to_json(parsed, indent=2)
        return None
    return None


def parse_json_record(text: str) -> Optional[Dict[str, Any]]:
    """Parse an object from text, unwrapping quoted JSON up to the fixed depth.

    Returns:
        The decoded dict, or None for anything else.
    """
    candidate = text.strip()
    if not candidate:
        return None

    for _ in range(JSON_UNWRAP_DEPTH):
        if not candidate.startswith(("{", '"')):
            return None
        try:
            parsed = json.loads(candidate)
        except ValueError:
            return None
        if isinstance(parsed, str):
            candidate = parsed.strip()
            continue
        return as_record(parsed)
    return None


def wrap_line(text: str, width: int) -> List[str]:
    """Wrap text to ``width`` columns; every newline starts a new row.

    Empty logical lines are preserved as empty rows.
    """
    if width <= 0:
        return []
    return wrap_ansi_text(text.replace("\r\n", "\n"), width)
