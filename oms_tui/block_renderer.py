"""Render compiled blocks into terminal rows.

Every returned row is a complete line for one terminal row. Text blocks
wrap to the width (assistant text through the markdown renderer), tagged
log lines get an aligned tag column, tool blocks become cards and
separators become a labeled rule.
"""

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .blocks import (
    AGENT_LOG,
    ASSISTANT,
    DIM,
    ERROR,
    STATUS,
    THINKING,
    USER,
    WARN,
    Block,
    SeparatorBlock,
    TextBlock,
    ToolBlock,
)
from .colors import BOX_CHARS, FG, ICON, RESET, lifecycle_fg
from .display_width import clip_ansi, clip_text, visible_width
from .event_compiler import build_render_blocks
from .lifecycle_formatter import derive_tagged_text, max_tagged_text_width, render_tagged_text_lines
from .markdown import render_markdown_lines
from .text_format import wrap_line
from .tool_renderer import render_tool_block_lines

logger = logging.getLogger(__name__)

_STYLE_COLORS = {
    USER: FG.border,
    THINKING: FG.dim,
    DIM: FG.dim,
}

_GLYPH_STYLES = {
    ERROR: (FG.error, ICON["error"]),
    WARN: (FG.warning, ICON["warning"]),
}


@dataclass
class RenderOptions:
    """Per-pass rendering switches."""
    align_log_tags: bool = False  # Share one tag column width across all tagged lines


def render_text_block_lines(block: TextBlock, width: int, tag_content_width: int = 0) -> List[str]:
    """Render a text block.

    Args:
        block: The block.
        width: Target width.
        tag_content_width: Shared tag column width; 0 renders agent log tags
            at their own width and leaves other tag-capable lines untagged.
    """
    if width <= 0 or not block.text:
        return []

    tagged = derive_tagged_text(block)
    if tagged is not None:
        if block.style == AGENT_LOG:
            if tag_content_width > 0:
                return render_tagged_text_lines(tagged, width, tag_content_width)
            return render_tagged_text_lines(tagged, width, visible_width(tagged.tag), 1)
        if tag_content_width > 0:
            return render_tagged_text_lines(tagged, width, tag_content_width)

    if block.style == ASSISTANT:
        markdown_lines = render_markdown_lines(block.text, width)
        if markdown_lines:
            return markdown_lines

    if block.style in _GLYPH_STYLES:
        color, glyph = _GLYPH_STYLES[block.style]
        prefix_width = visible_width(glyph) + 1
        wrapped = wrap_line(block.text, max(1, width - prefix_width))
        return [
            f"{color}{glyph + ' ' if i == 0 else ' ' * prefix_width}{line}{RESET}"
            for i, line in enumerate(wrapped)
        ]

    wrapped = wrap_line(block.text, width)
    if block.style == STATUS:
        color = block.color or FG.muted
    elif block.style == AGENT_LOG:
        color = lifecycle_fg(block.lifecycle) if block.lifecycle else FG.dim
    else:
        color = block.color or _STYLE_COLORS.get(block.style, "")
    if not color:
        return wrapped
    return [f"{color}{line}{RESET}" for line in wrapped]


def render_separator_lines(block: SeparatorBlock, width: int) -> List[str]:
    """Dim horizontal rule with the label centered in it."""
    if width <= 0:
        return []
    label = f" {clip_text(block.label, width - 2)} " if block.label and width > 2 else ""
    total_fill = max(0, width - visible_width(label))
    left = total_fill // 2
    right = total_fill - left
    h = BOX_CHARS["horizontal"]
    return [f"{FG.dim}{h * left}{label}{h * right}{RESET}"]


def render_blocks_to_lines(
    blocks: Sequence[Block], width: int, options: Optional[RenderOptions] = None
) -> List[str]:
    """Render blocks in order; one failing block is skipped, not fatal."""
    options = options or RenderOptions()
    tag_width = max_tagged_text_width(blocks) if options.align_log_tags else 0
    lines: List[str] = []
    for block in blocks:
        try:
            if isinstance(block, TextBlock):
                lines.extend(render_text_block_lines(block, width, tag_width))
            elif isinstance(block, ToolBlock):
                lines.extend(render_tool_block_lines(block, width))
            elif isinstance(block, SeparatorBlock):
                lines.extend(render_separator_lines(block, width))
        except Exception:
            logger.debug(f"Failed to render {block.kind} block", exc_info=True)
    # Glyph and tag prefixes can still exceed very narrow widths
    return [clip_ansi(line, width) if visible_width(line) > width else line for line in lines]


def get_rendered_rpc_lines(
    events: Sequence[Any], width: int, options: Optional[RenderOptions] = None
) -> List[str]:
    """Compile and render a whole event log at ``width``."""
    width = max(0, width)
    if width <= 0:
        return []
    return render_blocks_to_lines(build_render_blocks(events), width, options)


def clamp_scroll_top(scroll_top: Optional[float], total_lines: int, height: int) -> int:
    """Clamp a scroll offset to ``[0, max(0, total_lines - height)]``.

    None (or a non-finite value) means the tail.
    """
    max_scroll_top = max(0, total_lines - height)
    if scroll_top is None or scroll_top != scroll_top or scroll_top in (float("inf"), float("-inf")):
        return max_scroll_top
    return max(0, min(max_scroll_top, int(scroll_top)))


def render_rpc_events(
    events: Sequence[Any],
    width: int,
    height: int,
    scroll_top: Optional[float] = None,
    options: Optional[RenderOptions] = None,
) -> List[str]:
    """Render the visible window of an event log.

    Args:
        events: Event log.
        width: Viewport width.
        height: Viewport height.
        scroll_top: 0-based first visible line; None shows the tail.
        options: Rendering switches.

    Returns:
        At most ``height`` lines.
    """
    width = max(0, width)
    height = max(0, height)
    if width <= 0 or height <= 0:
        return []
    lines = get_rendered_rpc_lines(events, width, options)
    top = clamp_scroll_top(scroll_top, len(lines), height)
    return lines[top:top + height]
