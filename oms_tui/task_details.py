"""Details pane for the selected task issue.

The issue is fetched asynchronously from the task store. Only the most
recent request may update the pane: each fetch takes a sequence number and
its result is dropped when a newer fetch started or the selection moved on.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, List, Optional

from .agent_pane import MOUSE_WHEEL_DOWN, MOUSE_WHEEL_UP
from .colors import FG, RESET
from .config import get_config
from .display_width import clip_pad_ansi
from .markdown import render_markdown_lines
from .models import AgentInfo, AgentLookup, AgentUsage, DirtyCallback, TaskClient, TaskIssue
from .task_format import format_issue_priority, format_issue_status_styled
from .ui_utils import (
    center_pad,
    format_compact_duration,
    format_relative_time,
    format_tokens,
    format_usd,
    format_verbose_duration,
)

logger = logging.getLogger(__name__)

RECENT_COMMENTS = 10
TERMINAL_AGENT_STATUSES = frozenset(("done", "failed", "aborted", "stopped", "dead"))


def is_terminal_agent_status(status: Any) -> bool:
    return isinstance(status, str) and status.strip().lower() in TERMINAL_AGENT_STATUSES


def aggregate_task_usage(agents: List[AgentInfo], issue: Optional[TaskIssue] = None) -> Optional[AgentUsage]:
    """Summed usage of the agents working a task.

    Falls back to the issue's stored ``usage_totals`` when no agent is live.
    Returns None when there is nothing to report.
    """
    if agents:
        total = AgentUsage()
        for agent in agents:
            total.add(agent.usage)
        return total
    if issue is None:
        return None
    stored = AgentUsage.from_dict(issue.extra.get("usage_totals"))
    if stored.total <= 0 and stored.cost <= 0:
        return None
    return stored


def compute_task_duration(agents: List[AgentInfo], now: Optional[float] = None) -> Optional[float]:
    """Seconds from the first spawn to the last activity (or now, while running)."""
    starts = [a.spawned_at for a in agents if a.spawned_at > 0]
    ends = [a.last_activity for a in agents if a.last_activity > 0]
    if not starts or not ends:
        return None
    ended_at = max(ends)
    if any(not is_terminal_agent_status(a.status) for a in agents):
        ended_at = max(ended_at, time.time() if now is None else now)
    return max(0.0, ended_at - min(starts))


def format_agent_breakdown(agent: AgentInfo, now: Optional[float] = None) -> str:
    """One fixed-layout usage row: role, status, token columns, cost, context, runtime."""
    role = "designer" if agent.role == "designer-worker" else agent.role
    usage = agent.usage

    def tk(count: float) -> str:
        return format_tokens(count).rjust(4)

    line = (
        f"{role.ljust(10)} |{center_pad(agent.status, 8)}|"
        f" ↓{tk(usage.input)} ↑{tk(usage.output)} R{tk(usage.cache_read)}"
        f" W{tk(usage.cache_write)} T{tk(usage.total)} {format_usd(usage.cost)}"
    )
    context_window = agent.context_window or 0
    context_tokens = agent.context_tokens or 0
    if context_window > 0:
        pct = max(0, min(999, round(context_tokens / context_window * 100)))
        line += f" C{str(pct).rjust(3)}%"
    elif context_tokens > 0:
        line += f" ctx:{format_tokens(context_tokens)}"

    current = time.time() if now is None else now
    end = agent.last_activity if is_terminal_agent_status(agent.status) else current
    start = agent.spawned_at or end
    line += f" T{format_compact_duration(max(0.0, end - start))}"
    if agent.compaction_count > 0:
        line += f" C:{agent.compaction_count}"
    return line


def _section(title: str) -> List[str]:
    return ["", f"{FG.dim}── {title} ──{RESET}"]


class TaskDetailsPane:
    """Selection-driven view of one task issue.

    Args:
        client: Task store client used to fetch the full issue.
        registry: Agent registry for live usage; optional.
        on_dirty: Called whenever the pane needs a re-render.
    """

    def __init__(
        self,
        client: TaskClient,
        registry: Optional[AgentLookup] = None,
        on_dirty: Optional[DirtyCallback] = None,
    ):
        self._client = client
        self._registry = registry
        self._on_dirty = on_dirty
        self.selected_id: Optional[str] = None
        self.issue: Optional[TaskIssue] = None
        self.error: Optional[str] = None
        self._fetch_seq = 0
        self._scroll_top = 0
        self._max_scroll_top = 0

    def select(self, issue_id: Optional[str], snapshot: Optional[TaskIssue] = None) -> Optional[Awaitable[None]]:
        """Change the selection, starting a fetch when it moved.

        ``snapshot`` is the list pane's copy of the issue; it replaces the
        shown issue whenever its snapshot key differs.

        Returns:
            The scheduled fetch task, or None when nothing was scheduled.
        """
        task = None
        if issue_id != self.selected_id:
            self.selected_id = issue_id
            self.issue = None
            self.error = None
            self._scroll_top = 0
            if issue_id:
                task = self._schedule(self.fetch(issue_id))

        if issue_id and snapshot is not None and snapshot.id == issue_id:
            if self.issue is None or self.issue.snapshot_key() != snapshot.snapshot_key():
                self.issue = snapshot
                self.error = None
        return task

    def _schedule(self, coro: Awaitable[None]) -> Optional[Awaitable[None]]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; issue fetch not scheduled")
            coro.close()
            return None
        return loop.create_task(coro)

    async def fetch(self, issue_id: str) -> None:
        """Fetch ``issue_id``; stale completions are discarded."""
        self._fetch_seq += 1
        seq = self._fetch_seq
        try:
            issue = await self._client.show(issue_id)
        except Exception as exc:
            if seq != self._fetch_seq or self.selected_id != issue_id:
                return
            logger.debug(f"Failed to load issue {issue_id}: {exc}")
            self.issue = None
            self.error = str(exc) or exc.__class__.__name__
            self._notify()
            return
        if seq != self._fetch_seq or self.selected_id != issue_id:
            return
        self.issue = issue
        self.error = None
        self._notify()

    def handle_mouse(self, name: str) -> bool:
        direction = -1 if name == MOUSE_WHEEL_UP else 1 if name == MOUSE_WHEEL_DOWN else 0
        if not direction:
            return False
        step = get_config().scroll_step_lines
        self._scroll_top = max(0, min(self._max_scroll_top, self._scroll_top + direction * step))
        self._notify()
        return True

    def _notify(self) -> None:
        if self._on_dirty is not None:
            self._on_dirty()

    def build_lines(self, width: int, now: Optional[float] = None) -> List[str]:
        """All content lines before scrolling and padding."""
        issue_id = self.selected_id
        if not issue_id:
            return ["No selection"]
        if self.error:
            return [f"{FG.error}Error loading {issue_id}{RESET}", self.error]
        if self.issue is None:
            return [f"{FG.dim}Loading {issue_id}…{RESET}"]

        issue = self.issue
        lines = [
            f"{FG.accent}{issue.id}{RESET}",
            issue.title,
            f"status: {format_issue_status_styled(issue.status or None)}  "
            f"prio: {format_issue_priority(issue.priority)}",
            f"assignee: {issue.assignee}" if issue.assignee else "assignee: (none)",
        ]
        if issue.labels:
            lines.append(f"labels: {', '.join(issue.labels)}")
        if issue.depends_on_ids:
            lines.append(f"depends on: {', '.join(issue.depends_on_ids)}")

        agents = self._registry.get_by_task(issue.id) if self._registry is not None else []
        duration = compute_task_duration(agents, now)
        if duration is not None:
            lines.append(f"task duration: {format_verbose_duration(duration)}")
        usage = aggregate_task_usage(agents, issue)
        if usage is not None:
            lines.append(
                f"agent usage: {len(agents)}  ↑{format_tokens(usage.input)} "
                f"↓{format_tokens(usage.output)}  total:{format_tokens(usage.total)}"
            )
            if usage.cache_read > 0 or usage.cache_write > 0:
                lines.append(f"cache: R{format_tokens(usage.cache_read)} W{format_tokens(usage.cache_write)}")
            lines.append(f"cost: {format_usd(usage.cost)}")

        if agents:
            lines.extend(_section("Agents"))
            ordered = sorted(agents, key=lambda a: (a.last_activity, a.spawned_at), reverse=True)
            lines.extend(format_agent_breakdown(agent, now) for agent in ordered)

        for title, text in (
            ("Description", issue.description),
            ("Acceptance Criteria", issue.acceptance_criteria),
        ):
            body = text.strip() if text else ""
            if body:
                lines.extend(_section(title))
                lines.extend(render_markdown_lines(body, width))

        lines.append("")
        if not issue.comments:
            lines.append("comments: (none)")
            return lines
        lines.append(f"comments: {len(issue.comments)}")
        indent = "  " if width >= 2 else ""
        for comment in issue.comments[-RECENT_COMMENTS:]:
            when = format_relative_time(comment.created_at, now) if comment.created_at else ""
            lines.append(f"- {comment.author} {when}".strip())
            text = comment.text.strip()
            if text:
                comment_width = max(1, width - len(indent))
                lines.extend(indent + line for line in render_markdown_lines(text, comment_width))
        return lines

    def render_lines(self, width: int, height: int, now: Optional[float] = None) -> List[str]:
        """Visible rows, each exactly ``width`` columns wide."""
        if width <= 0 or height <= 0:
            return []
        lines = self.build_lines(width, now)
        self._max_scroll_top = max(0, len(lines) - height)
        self._scroll_top = max(0, min(self._max_scroll_top, self._scroll_top))
        visible = lines[self._scroll_top:self._scroll_top + height]
        visible.extend([""] * (height - len(visible)))
        return [clip_pad_ansi(line, width) for line in visible]
