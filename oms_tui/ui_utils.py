"""Small number, time and padding formatters used by the panes."""

import math
import time
from datetime import datetime
from typing import Optional


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_tokens(count: float) -> str:
    """Format a token count: 999, 1.2k, 15k, 1.5M, 15M."""
    if count < 1_000:
        return str(int(count))
    if count < 10_000:
        return f"{count / 1_000:.1f}k"
    if count < 1_000_000:
        return f"{_round_half_up(count / 1_000)}k"
    if count < 10_000_000:
        return f"{count / 1_000_000:.1f}M"
    return f"{_round_half_up(count / 1_000_000)}M"


def format_usd(value: float) -> str:
    """Format a cost: $0.000 when zero, 3 decimals below $1, else 2."""
    if value <= 0:
        return "$0.000"
    if value >= 1:
        return f"${value:.2f}"
    return f"${value:.3f}"


def parse_timestamp(value: object) -> Optional[float]:
    """Parse an ISO-8601 string to epoch seconds, or None."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).timestamp()
    except ValueError:
        return None


def format_relative_time(iso: str, now: Optional[float] = None) -> str:
    """Render an ISO timestamp as ``5s ago``/``3m ago``/``2h ago``/``1d ago``.

    Unparsable input is returned unchanged.
    """
    stamp = parse_timestamp(iso)
    if stamp is None:
        return iso
    seconds = int((time.time() if now is None else now) - stamp)
    minutes, hours, days = seconds // 60, seconds // 3600, seconds // 86400
    if days > 0:
        return f"{days}d ago"
    if hours > 0:
        return f"{hours}h ago"
    if minutes > 0:
        return f"{minutes}m ago"
    return f"{max(0, seconds)}s ago"


def format_verbose_duration(seconds: float) -> str:
    """Format a duration like ``1d 2h 3m 4s``; leading zero units are omitted."""
    if not seconds or seconds <= 0 or math.isinf(seconds):
        return "0s"
    total = int(seconds)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours or days:
        parts.append(f"{hours}h")
    if minutes or hours or days:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")
    return " ".join(parts)


def format_compact_duration(seconds: float) -> str:
    """Three-column duration: `` 5s``, ``12m``, `` 3h``, ``99d`` at most."""
    if not seconds or seconds <= 0:
        return " 0s"
    secs = int(seconds)
    if secs < 100:
        return f"{secs}s".rjust(3)
    minutes = secs // 60
    if minutes < 100:
        return f"{minutes}m".rjust(3)
    hours = minutes // 60
    if hours < 100:
        return f"{hours}h".rjust(3)
    days = hours // 24
    if days < 100:
        return f"{days}d".rjust(3)
    return "99d"


def center_pad(text: str, width: int) -> str:
    """Center plain text in ``width`` columns, truncating when too long."""
    if len(text) >= width:
        return text[:width]
    gap = width - len(text)
    left = gap // 2
    return " " * left + text + " " * (gap - left)
