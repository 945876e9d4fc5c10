"""Data shapes consumed from the agent registry and the task store.

The rendering core only reads these snapshots. ``from_dict`` constructors
accept loosely-typed records (for example NDJSON input) and fill missing
fields with neutral defaults.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from .text_format import as_record


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value if value > 0 else 0


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


@dataclass
class AgentUsage:
    """Token and cost accounting for one agent."""
    input: float = 0
    output: float = 0
    cache_read: float = 0
    cache_write: float = 0
    total_tokens: float = 0
    cost: float = 0

    @property
    def total(self) -> float:
        """Total tokens, summed from the parts when not reported."""
        return self.total_tokens or (self.input + self.output + self.cache_read + self.cache_write)

    def add(self, other: "AgentUsage") -> None:
        self.input += other.input
        self.output += other.output
        self.cache_read += other.cache_read
        self.cache_write += other.cache_write
        self.total_tokens += other.total
        self.cost += other.cost

    @classmethod
    def from_dict(cls, data: Any) -> "AgentUsage":
        record = as_record(data) or {}
        return cls(
            input=_number(record.get("input")),
            output=_number(record.get("output")),
            cache_read=_number(record.get("cacheRead")),
            cache_write=_number(record.get("cacheWrite")),
            total_tokens=_number(record.get("totalTokens")),
            cost=_number(record.get("cost")),
        )


@dataclass
class AgentInfo:
    """Snapshot of one agent as the registry reports it.

    Timestamps are epoch seconds. ``events`` is the agent's append-only
    event log; the renderer observes growth through its length.
    """
    id: str
    role: str = ""
    status: str = ""
    usage: AgentUsage = field(default_factory=AgentUsage)
    spawned_at: float = 0
    last_activity: float = 0
    task_id: Optional[str] = None
    model: Optional[str] = None
    thinking_level: Optional[str] = None
    context_window: Optional[int] = None
    context_tokens: Optional[int] = None
    compaction_count: int = 0
    events: List[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentInfo":
        context_window = data.get("contextWindow")
        context_tokens = data.get("contextTokens")
        events = data.get("events")
        return cls(
            id=_text(data.get("id"), "?"),
            role=_text(data.get("role")),
            status=_text(data.get("status")),
            usage=AgentUsage.from_dict(data.get("usage")),
            spawned_at=_number(data.get("spawnedAt")),
            last_activity=_number(data.get("lastActivity")),
            task_id=_text(data.get("taskId")) or None,
            model=_text(data.get("model")) or None,
            thinking_level=_text(data.get("thinkingLevel")) or None,
            context_window=int(context_window) if _number(context_window) else None,
            context_tokens=int(context_tokens) if _number(context_tokens) else None,
            compaction_count=int(_number(data.get("compactionCount"))),
            events=list(events) if isinstance(events, list) else [],
        )


@dataclass
class TaskComment:
    author: str = ""
    text: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "TaskComment":
        record = as_record(data) or {}
        return cls(
            author=_text(record.get("author")),
            text=_text(record.get("text")),
            created_at=_text(record.get("created_at")),
        )


@dataclass
class TaskIssue:
    """Task store issue snapshot. Unknown fields are kept in ``extra``."""
    id: str
    title: str = ""
    status: str = ""
    priority: Optional[float] = None
    description: Optional[str] = None
    acceptance_criteria: Optional[str] = None
    assignee: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    depends_on_ids: List[str] = field(default_factory=list)
    comments: List[TaskComment] = field(default_factory=list)
    updated_at: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = (
        "id", "title", "status", "priority", "description", "acceptance_criteria",
        "assignee", "labels", "depends_on_ids", "dependsOnIds", "comments", "updated_at",
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskIssue":
        priority = data.get("priority")
        labels = data.get("labels")
        depends = data.get("depends_on_ids", data.get("dependsOnIds"))
        comments = data.get("comments")
        return cls(
            id=_text(data.get("id"), "?"),
            title=_text(data.get("title")),
            status=_text(data.get("status")),
            priority=priority if isinstance(priority, (int, float)) and not isinstance(priority, bool) else None,
            description=_text(data.get("description")) or None,
            acceptance_criteria=_text(data.get("acceptance_criteria")) or None,
            assignee=_text(data.get("assignee")) or None,
            labels=[str(label) for label in labels] if isinstance(labels, list) else [],
            depends_on_ids=[str(dep) for dep in depends] if isinstance(depends, list) else [],
            comments=[TaskComment.from_dict(c) for c in comments] if isinstance(comments, list) else [],
            updated_at=_text(data.get("updated_at")),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )

    def snapshot_key(self) -> str:
        """Cheap change detector for a selected issue."""
        return f"{self.id}|{self.updated_at}|{self.status}|{len(self.comments)}"


class AgentLookup(Protocol):
    """Read-only view of the agent registry."""

    def get(self, agent_id: str) -> Optional[AgentInfo]: ...

    def get_by_task(self, task_id: str) -> List[AgentInfo]: ...


class TaskClient(Protocol):
    """Asynchronous task store access used by the details pane."""

    def show(self, issue_id: str) -> Awaitable[TaskIssue]: ...


# Re-render notification callback
DirtyCallback = Callable[[], None]
