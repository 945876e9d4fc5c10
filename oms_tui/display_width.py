"""Display width utilities for terminal rendering.

Provides escape-sequence-aware measurement, clipping, padding and wrapping
for strings that mix styled ANSI output with wide characters (CJK, emoji),
ambiguous-width characters and zero-width characters.

Escape sequences recognised (and treated as zero width):
- CSI: ESC [ ... final byte 0x40-0x7E
- OSC: ESC ] ... BEL | ST
- DCS/PM/APC: ESC P | ESC ^ | ESC _ ... ST
- Single-byte C1 CSI: 0x9B ... final byte
- Any other two-character ESC sequence

All functions here are total: they accept arbitrary strings and return
well-defined results for non-positive widths instead of raising.
"""

import unicodedata
from functools import lru_cache
from typing import List

import wcwidth

from .colors import ELLIPSIS, RESET
from .config import get_config

ESC = "\x1b"
C1_CSI = "\x9b"

# Combining diacritical mark blocks (always zero width)
_COMBINING_RANGES = (
    (0x0300, 0x036F),
    (0x1AB0, 0x1AFF),
    (0x1DC0, 0x1DFF),
    (0x20D0, 0x20FF),
    (0xFE20, 0xFE2F),
)


def ansi_sequence_end(text: str, start: int) -> int:
    """Find the end of an escape sequence starting at ``start``.

    Args:
        text: The string to scan.
        start: Index of a candidate ESC or C1 CSI character.

    Returns:
        Index one past the end of the sequence, or -1 if no escape
        sequence starts at ``start``. Unterminated sequences extend to
        the end of the string.
    """
    length = len(text)
    first = text[start]

    if first == ESC:
        if start + 1 >= length:
            return start + 1
        second = text[start + 1]

        if second == "[":
            i = start + 2
            while i < length:
                if 0x40 <= ord(text[i]) <= 0x7E:
                    return i + 1
                i += 1
            return length

        if second == "]":
            i = start + 2
            while i < length:
                if text[i] == "\x07":
                    return i + 1
                if text[i] == ESC and i + 1 < length and text[i + 1] == "\\":
                    return i + 2
                i += 1
            return length

        if second in ("P", "^", "_"):
            i = start + 2
            while i < length:
                if text[i] == ESC and i + 1 < length and text[i + 1] == "\\":
                    return i + 2
                i += 1
            return length

        return min(length, start + 2)

    if first == C1_CSI:
        i = start + 1
        while i < length:
            if 0x40 <= ord(text[i]) <= 0x7E:
                return i + 1
            i += 1
        return length

    return -1


def _is_combining(code_point: int) -> bool:
    for low, high in _COMBINING_RANGES:
        if low <= code_point <= high:
            return True
    return False


@lru_cache(maxsize=4096)
def _char_width(char: str, ambiguous_width: int) -> int:
    code_point = ord(char)
    if code_point <= 0x1F or 0x7F <= code_point <= 0x9F:
        return 0
    if code_point == 0x200D:  # ZWJ
        return 0
    if 0xFE00 <= code_point <= 0xFE0F:  # variation selectors
        return 0
    if _is_combining(code_point) or unicodedata.combining(char):
        return 0

    eaw = unicodedata.east_asian_width(char)
    if eaw in ("F", "W"):
        return 2

    wc = wcwidth.wcwidth(char)
    if wc == 2:
        return 2
    if eaw == "A":
        return ambiguous_width
    if wc == 0:
        return 0
    return 1


def char_width(char: str) -> int:
    """Terminal columns occupied by a single code point.

    Zero-width joiners, variation selectors, combining marks and control
    characters are 0; East Asian Fullwidth/Wide code points are 2;
    Ambiguous code points use the configured ``ambiguous_width``;
    everything else is 1.
    """
    return _char_width(char, get_config().ambiguous_width)


def _is_escape_start(char: str) -> bool:
    return char == ESC or char == C1_CSI


def visible_width(text: str) -> int:
    """Calculate the display width of a string, skipping escape sequences.

    Args:
        text: The string to measure (may contain ANSI escape codes).

    Returns:
        The display width in terminal columns.
    """
    if not text:
        return 0
    if text.isascii() and text.isprintable():
        return len(text)

    ambiguous = get_config().ambiguous_width
    width = 0
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if _is_escape_start(char):
            i = ansi_sequence_end(text, i)
            continue
        width += _char_width(char, ambiguous)
        i += 1
    return width


def strip_ansi(text: str) -> str:
    """Remove all escape sequences from text."""
    if ESC not in text and C1_CSI not in text:
        return text
    parts = []
    i = 0
    length = len(text)
    while i < length:
        char = text[i]
        if _is_escape_start(char):
            i = ansi_sequence_end(text, i)
            continue
        parts.append(char)
        i += 1
    return "".join(parts)


def clip_text(text: str, max_width: int) -> str:
    """Clip text to a display width, appending an ellipsis if truncated.

    Escape sequences inside the retained prefix are kept verbatim and are
    never split.

    Args:
        text: The string to clip.
        max_width: Maximum display width.

    Returns:
        ``text`` unchanged if it fits; otherwise the longest prefix that
        fits in ``max_width - 1`` columns followed by an ellipsis. Returns
        "" for non-positive widths and just the ellipsis for width 1.
    """
    if max_width <= 0:
        return ""
    if visible_width(text) <= max_width:
        return text
    if max_width <= 1:
        return ELLIPSIS

    target = max_width - 1
    ambiguous = get_config().ambiguous_width
    out = []
    width = 0
    i = 0
    length = len(text)
    while i < length and width < target:
        char = text[i]
        if _is_escape_start(char):
            end = ansi_sequence_end(text, i)
            out.append(text[i:end])
            i = end
            continue
        char_cols = _char_width(char, ambiguous)
        if width + char_cols > target:
            break
        out.append(char)
        width += char_cols
        i += 1

    return "".join(out) + ELLIPSIS


def clip_ansi(text: str, width: int) -> str:
    """Hard-clip styled text to a display width without an ellipsis.

    Appends a style reset when any escape sequence was kept and the output
    does not already end with one, so styling cannot bleed into padding or
    the next terminal row.

    Args:
        text: String that may contain ANSI escape codes.
        width: Maximum display width.

    Returns:
        The clipped string.
    """
    if width <= 0 or not text:
        return ""

    ambiguous = get_config().ambiguous_width
    out = []
    visible = 0
    saw_ansi = False
    i = 0
    length = len(text)
    while i < length and visible < width:
        char = text[i]
        if _is_escape_start(char):
            end = ansi_sequence_end(text, i)
            out.append(text[i:end])
            i = end
            saw_ansi = True
            continue
        char_cols = _char_width(char, ambiguous)
        if visible + char_cols > width:
            break
        out.append(char)
        visible += char_cols
        i += 1

    clipped = "".join(out)
    if saw_ansi and not clipped.endswith(RESET):
        clipped += RESET
    return clipped


def pad_to_width(text: str, target_width: int, align: str = "left") -> str:
    """Pad a string to a target display width, accounting for wide characters.

    Args:
        text: The string to pad (may contain ANSI escape codes).
        target_width: The desired display width.
        align: Alignment - 'left', 'right', or 'center'.

    Returns:
        The padded string. Text already at or over the width is unchanged.
    """
    current_width = visible_width(text)
    padding_needed = max(0, target_width - current_width)

    if align == "right":
        return " " * padding_needed + text
    elif align == "center":
        left_pad = padding_needed // 2
        right_pad = padding_needed - left_pad
        return " " * left_pad + text + " " * right_pad
    else:  # left
        return text + " " * padding_needed


def clip_pad_ansi(text: str, width: int) -> str:
    """Clip then right-pad styled text to exactly ``width`` columns."""
    if width <= 0:
        return ""
    clipped = clip_ansi(text, width)
    return pad_to_width(clipped, width)


def _is_sgr(sequence: str) -> bool:
    return sequence.startswith(ESC + "[") and sequence.endswith("m")


def _is_sgr_reset(sequence: str) -> bool:
    return sequence in ("\x1b[0m", "\x1b[m")


class _WrapBuilder:
    """Accumulates wrapped rows, carrying SGR styling across row breaks."""

    def __init__(self, width: int):
        self.width = width
        self.rows: List[str] = []
        self.parts: List[str] = []
        self.column = 0
        self.active: List[str] = []

    def emit_escape(self, sequence: str) -> None:
        self.parts.append(sequence)
        if _is_sgr(sequence):
            if _is_sgr_reset(sequence):
                self.active.clear()
            else:
                self.active.append(sequence)

    def emit_text(self, text: str, ambiguous: int, hard: bool = False) -> None:
        i = 0
        length = len(text)
        while i < length:
            char = text[i]
            if _is_escape_start(char):
                end = ansi_sequence_end(text, i)
                self.emit_escape(text[i:end])
                i = end
                continue
            cols = _char_width(char, ambiguous)
            if hard and self.column > 0 and self.column + cols > self.width:
                self.break_row()
            self.parts.append(char)
            self.column += cols
            i += 1

    def break_row(self) -> None:
        row = "".join(self.parts)
        if self.active:
            row += RESET
        self.rows.append(row)
        self.parts = ["".join(self.active)] if self.active else []
        self.column = 0

    def finish(self) -> List[str]:
        self.rows.append("".join(self.parts))
        return self.rows


def _split_words(line: str) -> List[str]:
    """Split into alternating runs of spaces and non-space text.

    Escape sequences stay attached to the word run they appear in.
    """
    runs: List[str] = []
    current: List[str] = []
    in_space = False
    i = 0
    length = len(line)
    while i < length:
        char = line[i]
        if _is_escape_start(char):
            end = ansi_sequence_end(line, i)
            if in_space and current:
                runs.append("".join(current))
                current = []
                in_space = False
            current.append(line[i:end])
            i = end
            continue
        is_space = char == " "
        if current and is_space != in_space:
            runs.append("".join(current))
            current = []
        in_space = is_space
        current.append(char)
        i += 1
    if current:
        runs.append("".join(current))
    return runs


def wrap_ansi(line: str, width: int) -> List[str]:
    """Word-wrap one logical line to ``width`` columns, preserving styling.

    Words longer than the width are hard-broken. Active SGR styles are
    closed with a reset at the end of each wrapped row and reopened at the
    start of the next, so every row is independently well-formed. Spaces at
    a wrap point are dropped; leading indentation is kept.

    Args:
        line: Text without newlines (may contain ANSI escape codes).
        width: Maximum display width per row.

    Returns:
        Wrapped rows; [] for non-positive width, [""] for empty input.
    """
    if width <= 0:
        return []
    if not line:
        return [""]
    if visible_width(line) <= width:
        return [line]

    ambiguous = get_config().ambiguous_width
    builder = _WrapBuilder(width)
    pending_space = ""

    for run in _split_words(line):
        if run.startswith(" "):
            if builder.column == 0 and not builder.rows:
                builder.emit_text(run, ambiguous, hard=True)
            else:
                pending_space += run
            continue

        run_width = visible_width(run)
        space_width = len(pending_space)

        if builder.column + space_width + run_width <= width:
            builder.emit_text(pending_space + run, ambiguous)
        elif run_width <= width:
            if builder.column > 0:
                builder.break_row()
            builder.emit_text(run, ambiguous)
        else:
            if builder.column > 0:
                if builder.column + space_width < width:
                    builder.emit_text(pending_space, ambiguous)
                else:
                    builder.break_row()
            builder.emit_text(run, ambiguous, hard=True)
        pending_space = ""

    return builder.finish()


def wrap_ansi_text(text: str, width: int) -> List[str]:
    """Wrap multi-line styled text; each newline starts a new logical line."""
    if width <= 0:
        return []
    wrapped: List[str] = []
    for segment in text.split("\n"):
        wrapped.extend(wrap_ansi(segment, width))
    return wrapped or [""]
