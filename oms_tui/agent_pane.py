"""Agent log pane: usage header plus the selected agent's rendered event log."""

import logging
import re
from typing import List, Optional

from .block_renderer import RenderOptions
from .colors import FG, RESET
from .config import get_config
from .display_width import clip_pad_ansi, visible_width
from .models import AgentInfo, AgentLookup, DirtyCallback
from .ui_utils import format_tokens, format_usd
from .viewport import Viewport

logger = logging.getLogger(__name__)

MOUSE_WHEEL_UP = "MOUSE_WHEEL_UP"
MOUSE_WHEEL_DOWN = "MOUSE_WHEEL_DOWN"

SYSTEM_AGENT_ID = "oms:system"

_MODEL_DATE_SUFFIX = re.compile(r"-\d{8,}$")


def format_identity_path(agent: AgentInfo) -> str:
    if agent.id == SYSTEM_AGENT_ID:
        return "OMS/system"
    return "OMS/" + agent.id.replace(":", "/")


def shorten_model(model: str) -> str:
    """Drop the provider prefix, the ``claude-`` family prefix and a date suffix."""
    short = model.rsplit("/", 1)[-1]
    if short.startswith("claude-"):
        short = short[len("claude-"):]
    return _MODEL_DATE_SUFFIX.sub("", short)


def format_usage_summary(agent: AgentInfo, width: int) -> str:
    """Centered ``↑in ↓out total N cost $X`` line; empty when nothing was used."""
    usage = agent.usage
    total = usage.total
    if total <= 0:
        return ""
    summary = (
        f"{FG.dim}↑{RESET}{FG.muted}{format_tokens(usage.input)}{RESET} "
        f"{FG.dim}↓{RESET}{FG.muted}{format_tokens(usage.output)}{RESET} "
        f"{FG.dim}total{RESET} {FG.accent}{format_tokens(total)}{RESET} "
        f"{FG.dim}cost{RESET} {FG.accent}{format_usd(usage.cost)}{RESET}"
    )
    if usage.cache_read > 0 or usage.cache_write > 0:
        summary += (
            f" {FG.dim}cache{RESET} {FG.muted}R{format_tokens(usage.cache_read)} "
            f"W{format_tokens(usage.cache_write)}{RESET}"
        )
    left = max(0, width - visible_width(summary)) // 2
    return " " * left + summary


class AgentPane:
    """Scrollable view of one agent's event log.

    The first row holds the usage summary; the remaining rows show the
    rendered log. Each agent keeps its own scroll position and follows the
    tail until the user scrolls away from the bottom.
    """

    def __init__(
        self,
        registry: AgentLookup,
        on_dirty: Optional[DirtyCallback] = None,
        options: Optional[RenderOptions] = None,
    ):
        self._registry = registry
        self._on_dirty = on_dirty
        self._options = options or RenderOptions()
        self.viewport = Viewport()

    def _active(self, active_agent_id: Optional[str]) -> Optional[AgentInfo]:
        if not active_agent_id:
            return None
        return self._registry.get(active_agent_id)

    def handle_mouse(self, name: str, width: int, height: int, active_agent_id: Optional[str]) -> bool:
        """Scroll the active agent's log on wheel events.

        Returns:
            True when the event was consumed.
        """
        direction = -1 if name == MOUSE_WHEEL_UP else 1 if name == MOUSE_WHEEL_DOWN else 0
        if not direction or width <= 0 or height <= 0:
            return False
        active = self._active(active_agent_id)
        if active is None:
            return False
        log_height = height - 1
        if log_height <= 0:
            return False

        step = get_config().scroll_step_lines
        self.viewport.scroll_by(
            active.id, active.events, direction * step, width, log_height, self._options
        )
        self.notify_dirty()
        return True

    def get_title(self, active_agent_id: Optional[str]) -> str:
        active = self._active(active_agent_id)
        if active is None:
            return "Agents"

        title = f"Agents ({format_identity_path(active)})"
        if active.model:
            title += f" | {shorten_model(active.model)}"
        if active.thinking_level:
            title += f" | thinking: {active.thinking_level}"
        context_window = active.context_window or 0
        context_tokens = active.context_tokens or 0
        if context_window > 0:
            title += f" | C{round(context_tokens / context_window * 100)}%"
        elif context_tokens > 0:
            title += f" | ctx: {format_tokens(context_tokens)}"
        if active.compaction_count > 0:
            title += f" | compactions: {active.compaction_count}"
        return title

    def render_lines(self, width: int, height: int, active_agent_id: Optional[str]) -> List[str]:
        """Rows for the pane region, each exactly ``width`` columns wide."""
        if width <= 0 or height <= 0:
            return []
        active = self._active(active_agent_id)
        if active is None:
            return [" " * width] * height

        rows = [clip_pad_ansi(format_usage_summary(active, width), width)]
        log_height = height - 1
        window = self.viewport.window(active.id, active.events, width, log_height, self._options)
        rows.extend(clip_pad_ansi(line, width) for line in window)
        rows.extend(" " * width for _ in range(height - len(rows)))
        return rows

    def notify_dirty(self) -> None:
        if self._on_dirty is not None:
            self._on_dirty()
