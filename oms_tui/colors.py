"""Palette, box-drawing glyphs and status icons for the dashboard.

Colors use a two-tier system like the client theme: a hex palette of named
colors, converted once to 24-bit ANSI escape codes. Renderers only ever use
the ANSI constants exported here, so swapping the palette recolors every
pane consistently.
"""

from typing import Dict, Tuple

# Base palette (oh-my-pi dark theme)
PALETTE: Dict[str, str] = {
    "accent": "#febc38",
    "border": "#178fb9",
    "success": "#89d281",
    "error": "#fc3a4b",
    "warning": "#e4c00f",
    "dim": "#5f6673",
    "muted": "#777d88",
}

BACKGROUND_PALETTE: Dict[str, str] = {
    "tool_pending": "#1d2129",
    "tool_success": "#161a1f",
    "tool_error": "#291d1d",
    "status_line": "#121212",
}


def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Convert hex color string to RGB tuple.

    Args:
        hex_color: Hex color string like "#FF5500".

    Returns:
        Tuple of (R, G, B) integers 0-255.
    """
    hex_color = hex_color.lstrip('#')
    return (
        int(hex_color[0:2], 16),
        int(hex_color[2:4], 16),
        int(hex_color[4:6], 16),
    )


def hex_to_ansi_fg(hex_color: str) -> str:
    """Convert hex color to ANSI 24-bit foreground escape code."""
    r, g, b = hex_to_rgb(hex_color)
    return f"\x1b[38;2;{r};{g};{b}m"


def hex_to_ansi_bg(hex_color: str) -> str:
    """Convert hex color to ANSI 24-bit background escape code."""
    r, g, b = hex_to_rgb(hex_color)
    return f"\x1b[48;2;{r};{g};{b}m"


class FG:
    """Foreground colors."""
    accent = hex_to_ansi_fg(PALETTE["accent"])
    border = hex_to_ansi_fg(PALETTE["border"])
    success = hex_to_ansi_fg(PALETTE["success"])
    error = hex_to_ansi_fg(PALETTE["error"])
    warning = hex_to_ansi_fg(PALETTE["warning"])
    dim = hex_to_ansi_fg(PALETTE["dim"])
    muted = hex_to_ansi_fg(PALETTE["muted"])


class BG:
    """Background colors."""
    tool_pending = hex_to_ansi_bg(BACKGROUND_PALETTE["tool_pending"])
    tool_success = hex_to_ansi_bg(BACKGROUND_PALETTE["tool_success"])
    tool_error = hex_to_ansi_bg(BACKGROUND_PALETTE["tool_error"])
    status_line = hex_to_ansi_bg(BACKGROUND_PALETTE["status_line"])


# Control sequences
RESET = "\x1b[0m"
RESET_FG = "\x1b[39m"
BOLD = "\x1b[1m"
UNBOLD = "\x1b[22m"
ITALIC = "\x1b[3m"
UNITALIC = "\x1b[23m"
UNDERLINE = "\x1b[4m"
UNUNDERLINE = "\x1b[24m"
STRIKETHROUGH = "\x1b[9m"
UNSTRIKETHROUGH = "\x1b[29m"

# Box-drawing characters (sharp corners)
BOX_CHARS = {
    "top_left": "┌",
    "top_right": "┐",
    "bottom_left": "└",
    "bottom_right": "┘",
    "horizontal": "─",
    "vertical": "│",
    "t_down": "┬",
    "t_up": "┴",
    "t_right": "├",
    "t_left": "┤",
    "cross": "┼",
}

# Status icons
ICON = {
    "success": "✔",
    "error": "✘",
    "warning": "⚠",
    "pending": "⟳",
    "dot": "·",
}

ELLIPSIS = "…"

# Agent role colors, keyed by role name
ROLE_FG: Dict[str, str] = {
    "singularity": hex_to_ansi_fg("#00ced1"),
    "worker": hex_to_ansi_fg("#6495ed"),
    "designer": hex_to_ansi_fg("#da70d6"),
    "designer-worker": hex_to_ansi_fg("#da70d6"),
    "speedy": hex_to_ansi_fg("#ffa07a"),
    "finisher": hex_to_ansi_fg("#ff6347"),
    "issuer": hex_to_ansi_fg("#7cfc00"),
    "merger": hex_to_ansi_fg("#9370db"),
    "steering": hex_to_ansi_fg("#ffd700"),
}

_SPAWNING = hex_to_ansi_fg("#b8b800")
_RUNNING = hex_to_ansi_fg("#5b9bd5")
_STUCK = hex_to_ansi_fg("#ff8c00")

# Lifecycle state colors (status events and agent log lines)
LIFECYCLE_FG: Dict[str, str] = {
    "spawning": _SPAWNING,
    "running": _RUNNING,
    "working": _RUNNING,
    "done": FG.success,
    "failed": FG.error,
    "aborted": FG.error,
    "dead": FG.error,
    "stuck": _STUCK,
    "stopped": FG.muted,
    "started": _SPAWNING,
    "finished": FG.success,
    "paused": _STUCK,
    "resumed": _RUNNING,
    "deferred": _STUCK,
    "skipped": FG.muted,
    "interrupt": FG.warning,
}


def agent_fg(role: str) -> str:
    """Foreground color for an agent role (falls back to dim)."""
    return ROLE_FG.get(role, FG.dim)


def lifecycle_fg(status: str) -> str:
    """Foreground color for a lifecycle state (falls back to muted)."""
    return LIFECYCLE_FG.get(status, FG.muted)
