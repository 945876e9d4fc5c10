"""Incremental tool-call argument accumulation.

Providers stream tool-call arguments either as object fragments (already
decoded, merged key by key) or as raw JSON text fragments that only form a
valid document once the call is complete. ``ToolArgsBuffer`` accepts both:
object fragments are deep-merged, text fragments are concatenated and the
whole buffer is re-parsed after every fragment.

Parse attempts return an explicit result instead of raising:

    Parsed(value)      - the buffer is a complete JSON document
    Buffering(raw)     - the buffer is still partial (or not JSON at all)
"""

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Union


@dataclass(frozen=True)
class Parsed:
    """The buffered text decoded successfully."""
    value: Any


@dataclass(frozen=True)
class Buffering:
    """The buffered text is not (yet) a complete JSON document."""
    raw: str


ParseResult = Union[Parsed, Buffering]


def parse_json_fragment(raw: str) -> ParseResult:
    """Attempt to decode accumulated argument text.

    Args:
        raw: All text fragments received so far, concatenated.

    Returns:
        Parsed with the decoded value, or Buffering with the raw text.
    """
    text = raw.strip()
    if not text:
        return Buffering(raw)
    try:
        return Parsed(json.loads(text))
    except ValueError:
        return Buffering(raw)


def deep_merge(base: Dict[str, Any], fragment: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``fragment`` into a copy of ``base``.

    Nested dicts merge recursively; any other value (lists included)
    replaces the previous one, last write wins.
    """
    merged = dict(base)
    for key, value in fragment.items():
        previous = merged.get(key)
        if isinstance(previous, dict) and isinstance(value, dict):
            merged[key] = deep_merge(previous, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


@dataclass
class ToolArgsBuffer:
    """Arguments of one streamed tool call, as received so far."""
    data: Dict[str, Any] = field(default_factory=dict)
    raw: str = ""
    result: ParseResult = field(default_factory=lambda: Parsed({}))

    @property
    def is_buffering(self) -> bool:
        """True while raw text fragments have not formed valid JSON."""
        return isinstance(self.result, Buffering)

    def merge_object(self, fragment: Dict[str, Any]) -> None:
        """Deep-merge an already-decoded argument fragment."""
        self.data = deep_merge(self.data, fragment)

    def append_text(self, fragment: str) -> None:
        """Concatenate a raw text fragment and retry parsing the buffer."""
        if not fragment:
            return
        self.raw += fragment
        self.result = parse_json_fragment(self.raw)
        if isinstance(self.result, Parsed) and isinstance(self.result.value, dict):
            self.data = deep_merge(self.data, self.result.value)

    def merge(self, fragment: Any) -> None:
        """Merge a fragment of either shape; other types are ignored."""
        if isinstance(fragment, dict):
            self.merge_object(fragment)
        elif isinstance(fragment, str):
            self.append_text(fragment)

    def finalize(self, arguments: Any) -> None:
        """Apply the complete argument value delivered when a call closes.

        A complete object is merged as authoritative. A complete string is
        parsed on its own; if it does not decode and nothing else was
        buffered, it is kept as the raw buffer so it can be shown verbatim.
        """
        if isinstance(arguments, dict):
            self.merge_object(arguments)
            return
        if not isinstance(arguments, str) or not arguments.strip():
            return
        result = parse_json_fragment(arguments)
        if isinstance(result, Parsed) and isinstance(result.value, dict):
            self.merge_object(result.value)
            if self.is_buffering:
                self.raw = arguments
                self.result = result
        elif not self.raw:
            self.raw = arguments
            self.result = result
