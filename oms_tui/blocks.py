"""Block types produced by the event compiler.

A compile pass appends blocks to a list in event order. A block is only
mutated while its stream is open (assistant text accumulating deltas, a
tool card accumulating argument fragments and results); after that it is
history and is only read by the renderer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .tool_args import ToolArgsBuffer

# TextBlock styles
ASSISTANT = "assistant"
USER = "user"
THINKING = "thinking"
DIM = "dim"
ERROR = "error"
WARN = "warn"
STATUS = "status"
AGENT_LOG = "agentLog"

# Call ids assigned to tool calls streamed without one
SYNTHETIC_ID_PREFIX = "__unkeyed_"

# ToolBlock states
PENDING = "pending"
SUCCESS = "success"
FAILED = "error"


@dataclass
class TextBlock:
    """A run of text in one style."""
    style: str
    text: str = ""
    color: Optional[str] = None  # ANSI fg override for the style's default color
    role: Optional[str] = None  # Agent role (agentLog style)
    lifecycle: Optional[str] = None  # Lifecycle keyword (agentLog style)
    level: Optional[str] = None  # Original log level for log events

    kind = "text"


@dataclass
class ToolBlock:
    """One tool invocation, from its first streamed fragment to its result."""
    tool_name: str
    args_preview: str = ""
    args_data: Dict[str, Any] = field(default_factory=dict)
    args_raw: str = ""  # Undecoded text fragments while arguments still stream
    result_preview: str = ""
    result_content: str = ""
    result_data: Any = None
    state: str = PENDING
    args_complete: bool = False
    call_id: Optional[str] = None

    kind = "tool"

    @property
    def has_result(self) -> bool:
        return bool(self.result_content or self.result_preview) or self.state != PENDING


@dataclass
class SeparatorBlock:
    """Turn boundary."""
    label: str = ""

    kind = "separator"


Block = Union[TextBlock, ToolBlock, SeparatorBlock]


@dataclass
class ToolCallState:
    """Tracking entry for a tool call that is still streaming or executing."""
    block_index: int
    tool_name: str
    args: ToolArgsBuffer = field(default_factory=ToolArgsBuffer)


@dataclass
class StreamState:
    """Scratch state for one compile pass.

    Open-stream indices point into the block list. ``tool_calls`` tracks
    calls whose arguments are still streaming and is cleared at
    ``toolcall_end``; ``tool_exec`` tracks calls awaiting their execution
    result and is evicted at ``tool_execution_end``.

    ``active_call_id`` correlates streaming events that carry no call id.
    Only one such unkeyed call can be in flight at a time; interleaved
    unkeyed calls from one producer are attributed to the latest start.
    The first id seen while an unkeyed call streams is adopted by it, and
    ``unkeyed_exec`` holds the last unkeyed call that closed without one
    until an execution event with an unknown id claims it.
    """
    assistant_index: Optional[int] = None
    thinking_index: Optional[int] = None
    user_input_index: Optional[int] = None
    tool_calls: Dict[str, ToolCallState] = field(default_factory=dict)
    tool_exec: Dict[str, ToolCallState] = field(default_factory=dict)
    active_call_id: Optional[str] = None
    unkeyed_exec: Optional[ToolCallState] = None
    synthetic_ids: int = 0

    def close_text_streams(self) -> None:
        """Close the assistant and thinking streams (interruption point)."""
        self.assistant_index = None
        self.thinking_index = None

    def next_synthetic_id(self) -> str:
        self.synthetic_ids += 1
        return f"{SYNTHETIC_ID_PREFIX}{self.synthetic_ids}"


def push_block(blocks: List[Block], block: Block) -> int:
    """Append a block and return its index."""
    blocks.append(block)
    return len(blocks) - 1
