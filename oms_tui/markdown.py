"""Markdown to styled terminal lines.

Parses with markdown-it (CommonMark plus tables and strikethrough) and
renders each block straight to wrapped rows of the target width:

- headings: level 1 bold+underline, level 2 bold, level 3+ keep a ``#`` prefix
- paragraphs, nested lists (``•`` / ``N.`` markers), block quotes, rules
- fenced code in a bordered frame with the language in the top border,
  optionally syntax highlighted with rich
- tables with adaptive column widths (see ``layout_table_columns``)
- inline bold, italic, strikethrough, code spans and links

Rendered output is memoized per (width, text) in a bounded LRU cache.
"""

import io
import logging
from collections import OrderedDict
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode
from rich.console import Console
from rich.syntax import Syntax

from .colors import (
    BOLD,
    BOX_CHARS,
    ELLIPSIS,
    FG,
    ITALIC,
    RESET_FG,
    STRIKETHROUGH,
    UNBOLD,
    UNDERLINE,
    UNITALIC,
    UNSTRIKETHROUGH,
    UNUNDERLINE,
)
from .config import get_config
from .display_width import clip_ansi, visible_width, wrap_ansi, wrap_ansi_text

logger = logging.getLogger(__name__)

HR_MAX_WIDTH = 80

# Languages written in fences that pygments knows under another name
LANGUAGE_ALIASES = {
    "js": "javascript",
    "ts": "typescript",
    "py": "python",
    "sh": "bash",
    "shell": "bash",
    "yml": "yaml",
}


@lru_cache(maxsize=1)
def _parser() -> MarkdownIt:
    return MarkdownIt("commonmark").enable(["table", "strikethrough"])


@lru_cache(maxsize=1)
def _highlight_console() -> Console:
    return Console(
        file=io.StringIO(),
        width=10_000,
        force_terminal=True,
        color_system="truecolor",
        highlight=False,
    )


def highlight_code(code: str, language: str) -> Optional[List[str]]:
    """Syntax-highlight code into one ANSI string per source line.

    Returns:
        Highlighted lines, or None when highlighting is disabled or fails.
    """
    theme = get_config().code_theme
    if not theme or not language:
        return None
    lang = LANGUAGE_ALIASES.get(language.lower(), language.lower())
    source_lines = code.split("\n")
    try:
        syntax = Syntax(code, lang, theme=theme, background_color="default")
        text = syntax.highlight(code)
        console = _highlight_console()
        with console.capture() as capture:
            console.print(text, end="", soft_wrap=True)
        rendered = capture.get().split("\n")
    except Exception:
        logger.debug(f"Syntax highlighting failed for language {language!r}", exc_info=True)
        return None
    if len(rendered) < len(source_lines):
        return None
    return rendered[: len(source_lines)]


def _longest_word_width(text: str, cap: int) -> int:
    longest = max((visible_width(word) for word in text.split()), default=0)
    return min(longest, cap)


def _longest_line_width(text: str) -> int:
    return max((visible_width(line) for line in text.split("\n")), default=0)


def layout_table_columns(
    natural: Sequence[int], minimum: Sequence[int], width: int
) -> Optional[List[int]]:
    """Choose column widths for a bordered table.

    Args:
        natural: Per-column width of the longest line (header and rows).
        minimum: Per-column width of the longest unbreakable word (capped).
        width: Total width available for the table, borders included.

    Returns:
        Cell widths (each >= 1, summing to at most ``width - 3*cols - 1``),
        or None when not even one column per cell fits.
    """
    count = len(natural)
    if count == 0:
        return None
    available = width - (3 * count + 1)
    if available < count:
        return None

    natural = [max(1, n) for n in natural]
    word_minimum = [max(1, m) for m in minimum]
    min_widths = list(word_minimum)

    if sum(min_widths) > available:
        # Shrink everything to 1, then share the slack by unbreakable-word weight
        min_widths = [1] * count
        remaining = available - count
        if remaining > 0:
            weights = [m - 1 for m in word_minimum]
            total_weight = sum(weights)
            growth = [(w * remaining) // total_weight if total_weight else 0 for w in weights]
            min_widths = [1 + g for g in growth]
            leftover = remaining - sum(growth)
            for i in range(count):
                if leftover <= 0:
                    break
                min_widths[i] += 1
                leftover -= 1

    if sum(natural) + 3 * count + 1 <= width:
        return [max(n, m) for n, m in zip(natural, min_widths)]

    potentials = [max(0, n - m) for n, m in zip(natural, min_widths)]
    total_potential = sum(potentials)
    extra = max(0, available - sum(min_widths))
    widths = [
        m + ((p * extra) // total_potential if total_potential else 0)
        for m, p in zip(min_widths, potentials)
    ]

    remaining = available - sum(widths)
    while remaining > 0:
        grew = False
        for i in range(count):
            if remaining <= 0:
                break
            if widths[i] < natural[i]:
                widths[i] += 1
                remaining -= 1
                grew = True
        if not grew:
            break
    return widths


class MarkdownRenderer:
    """Renders one markdown document at a fixed width."""

    def __init__(self, width: int):
        self.width = max(1, width)
        self._source_lines: List[str] = []

    def render(self, markdown: str) -> List[str]:
        if not markdown or not markdown.strip():
            return []
        normalized = markdown.replace("\r", "")
        self._source_lines = normalized.split("\n")
        root = SyntaxTreeNode(_parser().parse(normalized))
        lines = self._render_blocks(root.children, self.width)
        return [clip_ansi(line, self.width) if visible_width(line) > self.width else line for line in lines]

    # ---- Block level ----

    def _render_blocks(self, nodes: Sequence[SyntaxTreeNode], width: int) -> List[str]:
        lines: List[str] = []
        previous = None
        for node in nodes:
            rendered = self._render_block(node, width)
            if not rendered:
                continue
            tight = previous == "paragraph" and node.type in ("bullet_list", "ordered_list")
            if previous is not None and not tight:
                lines.append("")
            lines.extend(rendered)
            previous = node.type
        return lines

    def _render_block(self, node: SyntaxTreeNode, width: int) -> List[str]:
        kind = node.type
        if kind == "heading":
            return wrap_ansi_text(self._render_heading(node), width)
        if kind == "paragraph":
            return wrap_ansi_text(self._render_inline_children(node), width)
        if kind in ("bullet_list", "ordered_list"):
            return self._render_list(node, width)
        if kind == "blockquote":
            return self._render_blockquote(node, width)
        if kind in ("fence", "code_block"):
            return self._render_code_block(node.content, (node.info or "").strip(), width)
        if kind == "hr":
            return [f"{FG.dim}{BOX_CHARS['horizontal'] * min(width, HR_MAX_WIDTH)}{RESET_FG}"]
        if kind == "table":
            return self._render_table(node, width)
        if kind == "html_block":
            raw = node.content.strip()
            return wrap_ansi_text(raw, width) if raw else []
        if kind == "inline":
            return wrap_ansi_text(self._render_inline(node.children), width)
        logger.debug(f"Unhandled markdown block {kind!r}")
        return []

    def _render_heading(self, node: SyntaxTreeNode) -> str:
        level = int(node.tag[1:]) if node.tag[1:].isdigit() else 1
        text = self._render_inline_children(node)
        if level == 1:
            return f"{FG.accent}{BOLD}{UNDERLINE}{text}{UNUNDERLINE}{UNBOLD}{RESET_FG}"
        if level == 2:
            return f"{FG.accent}{BOLD}{text}{UNBOLD}{RESET_FG}"
        return f"{FG.accent}{BOLD}{'#' * level} {text}{UNBOLD}{RESET_FG}"

    def _render_list(self, node: SyntaxTreeNode, width: int) -> List[str]:
        ordered = node.type == "ordered_list"
        start = node.attrs.get("start", 1) if ordered else 1
        try:
            start = int(start)
        except (TypeError, ValueError):
            start = 1

        lines: List[str] = []
        for offset, item in enumerate(node.children):
            bullet = f"{start + offset}. " if ordered else "• "
            indent = visible_width(bullet)
            marker = f"{FG.accent}{bullet}{RESET_FG}"
            item_lines = self._render_list_item(item, max(1, width - indent))
            if not item_lines:
                lines.append(marker)
                continue
            lines.append(f"{marker}{item_lines[0]}")
            lines.extend(f"{' ' * indent}{line}" if line else "" for line in item_lines[1:])
        return lines

    def _render_list_item(self, item: SyntaxTreeNode, width: int) -> List[str]:
        lines: List[str] = []
        for child in item.children:
            lines.extend(self._render_block(child, width))
        return lines

    def _render_blockquote(self, node: SyntaxTreeNode, width: int) -> List[str]:
        bar = f"{FG.border}{BOX_CHARS['vertical']}{RESET_FG} "
        inner = self._render_blocks(node.children, max(1, width - 2)) or [""]
        return [f"{bar}{FG.muted}{ITALIC}{line}{UNITALIC}{RESET_FG}" for line in inner]

    def _render_code_block(self, code: str, info: str, width: int) -> List[str]:
        language = info.split()[0] if info else ""
        if code.endswith("\n"):
            code = code[:-1]
        max_content = max(1, width - 4)

        highlighted = highlight_code(code, language)
        source = highlighted if highlighted is not None else code.split("\n")
        color = "" if highlighted is not None else FG.muted

        wrapped: List[str] = []
        for line in source:
            wrapped.extend(wrap_ansi(line, max_content))
        if not wrapped:
            wrapped.append("")

        label = f" {language} " if language else ""
        longest = max(visible_width(line) for line in wrapped)
        min_frame = min(max_content, len(label)) if label else 1
        frame = max(min_frame, min(max_content, longest))

        h = BOX_CHARS["horizontal"]
        border = f"{FG.border}{BOX_CHARS['vertical']}{RESET_FG}"
        lines = [self._code_top_border(label, frame)]
        for line in wrapped:
            pad = " " * max(0, frame - visible_width(line))
            lines.append(f"{border} {color}{line}{pad}{RESET_FG} {border}")
        lines.append(
            f"{FG.border}{BOX_CHARS['bottom_left']}{h * (frame + 2)}{BOX_CHARS['bottom_right']}{RESET_FG}"
        )
        return lines

    @staticmethod
    def _code_top_border(label: str, frame: int) -> str:
        h = BOX_CHARS["horizontal"]
        if not label:
            return f"{FG.border}{BOX_CHARS['top_left']}{h * (frame + 2)}{BOX_CHARS['top_right']}{RESET_FG}"
        if len(label) > frame:
            label = label[: max(0, frame - 1)] + ELLIPSIS
        trailing = max(0, frame + 1 - visible_width(label))
        return (
            f"{FG.border}{BOX_CHARS['top_left']}{h}{FG.accent}{BOLD}{label}{UNBOLD}"
            f"{FG.border}{h * trailing}{BOX_CHARS['top_right']}{RESET_FG}"
        )

    # ---- Tables ----

    def _table_rows(self, node: SyntaxTreeNode) -> Tuple[List[str], List[List[str]]]:
        header: List[str] = []
        rows: List[List[str]] = []
        for section in node.children:
            for row in section.children:
                cells = [self._render_inline_children(cell) for cell in row.children]
                if section.type == "thead" and not header:
                    header = cells
                else:
                    rows.append(cells)
        return header, rows

    def _table_source(self, node: SyntaxTreeNode) -> str:
        if node.map:
            start, end = node.map
            return "\n".join(self._source_lines[start:end])
        return ""

    def _render_table(self, node: SyntaxTreeNode, width: int) -> List[str]:
        header, rows = self._table_rows(node)
        count = max([len(header)] + [len(row) for row in rows])
        if count == 0:
            return []

        def cell(cells: List[str], index: int) -> str:
            return cells[index] if index < len(cells) else ""

        cap = get_config().max_table_word_width
        all_rows = [header] + rows
        natural = [max(1, max(_longest_line_width(cell(r, i)) for r in all_rows)) for i in range(count)]
        minimum = [max(1, max(_longest_word_width(cell(r, i), cap) for r in all_rows)) for i in range(count)]

        widths = layout_table_columns(natural, minimum, width)
        if widths is None:
            source = self._table_source(node)
            return wrap_ansi_text(source, width) if source.strip() else []

        lines = [self._table_border("top_left", "t_down", "top_right", widths)]
        separator = self._table_border("t_right", "cross", "t_left", widths)
        lines.extend(self._table_row(header, widths, bold=True))
        lines.append(separator)
        for index, row in enumerate(rows):
            lines.extend(self._table_row(row, widths))
            if index < len(rows) - 1:
                lines.append(separator)
        lines.append(self._table_border("bottom_left", "t_up", "bottom_right", widths))
        return lines

    @staticmethod
    def _table_border(left: str, join: str, right: str, widths: Sequence[int]) -> str:
        h = BOX_CHARS["horizontal"]
        cells = [h * max(1, w) for w in widths]
        joint = f"{h}{BOX_CHARS[join]}{h}"
        return f"{FG.border}{BOX_CHARS[left]}{h}{joint.join(cells)}{h}{BOX_CHARS[right]}{RESET_FG}"

    @staticmethod
    def _table_row(cells: List[str], widths: Sequence[int], bold: bool = False) -> List[str]:
        border = f"{FG.border}{BOX_CHARS['vertical']}{RESET_FG}"
        wrapped = [
            wrap_ansi_text(cells[i] if i < len(cells) else "", max(1, w))
            for i, w in enumerate(widths)
        ]
        height = max(1, max(len(c) for c in wrapped))
        lines = []
        for row in range(height):
            parts = []
            for column, w in enumerate(widths):
                text = wrapped[column][row] if row < len(wrapped[column]) else ""
                if visible_width(text) > w:
                    # A wide character cannot be broken inside a narrower cell
                    text = clip_ansi(text, w)
                padded = text + " " * max(0, w - visible_width(text))
                parts.append(f"{BOLD}{padded}{UNBOLD}" if bold else padded)
            lines.append(f"{border} " + f" {border} ".join(parts) + f" {border}")
        return lines

    # ---- Inline ----

    def _render_inline_children(self, node: SyntaxTreeNode) -> str:
        parts = []
        for child in node.children:
            if child.type == "inline":
                parts.append(self._render_inline(child.children))
            else:
                parts.append(self._render_inline([child]))
        return "".join(parts)

    def _render_inline(self, nodes: Sequence[SyntaxTreeNode]) -> str:
        out = []
        for node in nodes:
            kind = node.type
            if kind == "text":
                out.append(node.content)
            elif kind in ("softbreak", "hardbreak"):
                out.append("\n")
            elif kind == "strong":
                out.append(f"{BOLD}{self._render_inline(node.children)}{UNBOLD}")
            elif kind == "em":
                out.append(f"{ITALIC}{self._render_inline(node.children)}{UNITALIC}")
            elif kind == "s":
                out.append(f"{STRIKETHROUGH}{self._render_inline(node.children)}{UNSTRIKETHROUGH}")
            elif kind == "code_inline":
                out.append(f"{FG.accent}`{node.content}`{RESET_FG}")
            elif kind in ("link", "image"):
                out.append(self._render_link(node))
            elif kind == "html_inline":
                out.append(node.content)
            elif node.children:
                out.append(self._render_inline(node.children))
            elif node.content:
                out.append(node.content)
        return "".join(out)

    def _render_link(self, node: SyntaxTreeNode) -> str:
        href = str(node.attrs.get("href") or node.attrs.get("src") or "")
        label = self._render_inline(node.children)
        plain = "".join(child.content for child in node.children if child.type == "text")
        display = label or href
        styled = f"{FG.accent}{UNDERLINE}{display}{UNUNDERLINE}{RESET_FG}"
        bare_href = href[len("mailto:"):] if href.startswith("mailto:") else href
        if not label or plain in (href, bare_href):
            return styled
        return f"{styled}{FG.dim} ({href}){RESET_FG}"


class MarkdownCache:
    """Least-recently-used map from (width, text) to rendered lines."""

    def __init__(self, limit: Optional[int] = None):
        self._limit = limit
        self._entries: "OrderedDict[Tuple[int, str], List[str]]" = OrderedDict()

    @property
    def limit(self) -> int:
        return self._limit if self._limit is not None else get_config().markdown_cache_limit

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Tuple[int, str]) -> bool:
        return key in self._entries

    def get(self, key: Tuple[int, str]) -> Optional[List[str]]:
        lines = self._entries.get(key)
        if lines is not None:
            self._entries.move_to_end(key)
        return lines

    def put(self, key: Tuple[int, str], lines: List[str]) -> None:
        self._entries[key] = lines
        self._entries.move_to_end(key)
        while len(self._entries) > max(0, self.limit):
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


_cache = MarkdownCache()


def render_markdown_lines(markdown: str, width: int) -> List[str]:
    """Render markdown to wrapped terminal lines, memoized per (width, text).

    Returns:
        Styled lines no wider than ``width``; [] for empty input or
        non-positive width. Callers must not mutate the returned list.
    """
    if width <= 0 or not markdown:
        return []
    key = (width, markdown)
    cached = _cache.get(key)
    if cached is not None:
        return cached
    rendered = MarkdownRenderer(width).render(markdown)
    _cache.put(key, rendered)
    return rendered


def clear_markdown_cache() -> None:
    _cache.clear()


def markdown_cache() -> MarkdownCache:
    """The process-wide render cache."""
    return _cache
