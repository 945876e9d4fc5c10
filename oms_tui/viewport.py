"""Render cache and scroll state for panes showing a growing event log.

The cache keeps the last rendered line array keyed by source identity,
source length and width. Event logs are append-only, so an unchanged
length means nothing new arrived; any key change recomputes the whole
compile and render pass.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .block_renderer import RenderOptions, clamp_scroll_top, get_rendered_rpc_lines
from .trace import trace

RenderFn = Callable[[Sequence[Any], int, Optional[RenderOptions]], List[str]]


@dataclass
class ViewportCacheEntry:
    source_identity: str
    source_length: int
    width: int
    align_log_tags: bool
    lines: List[str]


class ViewportCache:
    """Single-entry cache of rendered lines for the pane's current source."""

    def __init__(self, render: Optional[RenderFn] = None):
        self._render: RenderFn = render or get_rendered_rpc_lines
        self._entry: Optional[ViewportCacheEntry] = None
        self.hits = 0
        self.misses = 0

    def get_lines(
        self,
        source_identity: str,
        events: Sequence[Any],
        width: int,
        options: Optional[RenderOptions] = None,
    ) -> List[str]:
        """Rendered lines for ``events``, recomputed only when a key changes."""
        align = bool(options and options.align_log_tags)
        entry = self._entry
        if (
            entry is not None
            and entry.source_identity == source_identity
            and entry.source_length == len(events)
            and entry.width == width
            and entry.align_log_tags == align
        ):
            self.hits += 1
            return entry.lines

        self.misses += 1
        started = time.perf_counter()
        lines = self._render(events, width, options)
        elapsed_ms = (time.perf_counter() - started) * 1000
        trace(
            "VIEWPORT",
            f"miss source={source_identity} events={len(events)} width={width} "
            f"lines={len(lines)} took={elapsed_ms:.1f}ms",
        )
        self._entry = ViewportCacheEntry(source_identity, len(events), width, align, lines)
        return lines

    def invalidate(self) -> None:
        self._entry = None


@dataclass
class ScrollState:
    """Scroll offset of one source, pinned to the tail while following."""
    scroll_top: int = 0
    follow_tail: bool = True

    def resolve(self, total_lines: int, height: int) -> int:
        """Current first visible line, clamped; re-pins when at the bottom."""
        max_top = max(0, total_lines - height)
        if self.follow_tail:
            self.scroll_top = max_top
        else:
            self.scroll_top = clamp_scroll_top(self.scroll_top, total_lines, height)
        self.follow_tail = self.scroll_top == max_top
        return self.scroll_top

    def scroll_by(self, delta: int, total_lines: int, height: int) -> int:
        """Move by ``delta`` lines; leaving the bottom stops following."""
        current = self.resolve(total_lines, height)
        self.scroll_top = clamp_scroll_top(current + delta, total_lines, height)
        self.follow_tail = self.scroll_top == max(0, total_lines - height)
        return self.scroll_top

    def scroll_to(self, top: int, total_lines: int, height: int) -> int:
        self.scroll_top = clamp_scroll_top(top, total_lines, height)
        self.follow_tail = self.scroll_top == max(0, total_lines - height)
        return self.scroll_top


@dataclass
class Viewport:
    """Cached rendering plus per-source scroll state.

    Scroll state is remembered per source identity, so switching between
    agents restores each one's position.
    """
    cache: ViewportCache = field(default_factory=ViewportCache)
    scroll: Dict[str, ScrollState] = field(default_factory=dict)

    def scroll_state(self, source_identity: str) -> ScrollState:
        state = self.scroll.get(source_identity)
        if state is None:
            state = self.scroll[source_identity] = ScrollState()
        return state

    def window(
        self,
        source_identity: str,
        events: Sequence[Any],
        width: int,
        height: int,
        options: Optional[RenderOptions] = None,
    ) -> List[str]:
        """Visible lines of a source at the current scroll position."""
        if width <= 0 or height <= 0:
            return []
        lines = self.cache.get_lines(source_identity, events, width, options)
        top = self.scroll_state(source_identity).resolve(len(lines), height)
        return lines[top:top + height]

    def scroll_by(
        self,
        source_identity: str,
        events: Sequence[Any],
        delta: int,
        width: int,
        height: int,
        options: Optional[RenderOptions] = None,
    ) -> int:
        if width <= 0 or height <= 0:
            return 0
        lines = self.cache.get_lines(source_identity, events, width, options)
        return self.scroll_state(source_identity).scroll_by(delta, len(lines), height)
