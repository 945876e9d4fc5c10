"""Tests for the agent log pane and the task details pane."""

import asyncio

import pytest

from oms_tui.agent_pane import MOUSE_WHEEL_DOWN, MOUSE_WHEEL_UP, AgentPane, format_usage_summary, shorten_model
from oms_tui.display_width import strip_ansi, visible_width
from oms_tui.models import AgentInfo, AgentUsage, TaskComment, TaskIssue
from oms_tui.task_details import (
    TaskDetailsPane,
    aggregate_task_usage,
    compute_task_duration,
    format_agent_breakdown,
)
from oms_tui.ui_utils import parse_timestamp


class FakeRegistry:
    """In-memory agent registry."""

    def __init__(self, *agents):
        self.agents = {agent.id: agent for agent in agents}

    def get(self, agent_id):
        return self.agents.get(agent_id)

    def get_by_task(self, task_id):
        return [agent for agent in self.agents.values() if agent.task_id == task_id]


class FakeClient:
    """Task store client returning canned issues, optionally gated."""

    def __init__(self, issues=None, gates=None, error=None):
        self.issues = issues or {}
        self.gates = gates or {}
        self.error = error
        self.calls = []

    async def show(self, issue_id):
        self.calls.append(issue_id)
        issue = self.issues.get(issue_id)
        gate = self.gates.get(issue_id)
        if gate is not None:
            await gate.wait()
        if self.error is not None:
            raise self.error
        return issue


class DirtyCounter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


def log_events(n):
    return [{"type": "log", "level": "info", "message": str(i)} for i in range(n)]


def plain(lines):
    return [strip_ansi(line).rstrip() for line in lines]


COMMENT_TIME = "2026-01-01T00:00:00Z"


def sample_issue(**overrides):
    fields = dict(
        id="T-1",
        title="Fix",
        status="open",
        priority=1,
        labels=["x"],
        description="Do **it**",
        comments=[TaskComment("ann", "hi", COMMENT_TIME)],
    )
    fields.update(overrides)
    return TaskIssue(**fields)


class TestAgentPaneTitle:
    """Tests for the pane title."""

    def test_no_active_agent(self):
        assert AgentPane(FakeRegistry()).get_title(None) == "Agents"
        assert AgentPane(FakeRegistry()).get_title("missing") == "Agents"

    def test_full_title(self):
        agent = AgentInfo(
            id="worker:1",
            model="anthropic/claude-sonnet-4-20250514",
            thinking_level="high",
            context_window=200000,
            context_tokens=50000,
            compaction_count=2,
        )
        title = AgentPane(FakeRegistry(agent)).get_title("worker:1")
        assert title == "Agents (OMS/worker/1) | sonnet-4 | thinking: high | C25% | compactions: 2"

    def test_context_tokens_without_window(self):
        agent = AgentInfo(id="oms:system", context_tokens=1500)
        assert AgentPane(FakeRegistry(agent)).get_title("oms:system") == "Agents (OMS/system) | ctx: 1.5k"

    def test_shorten_model(self):
        assert shorten_model("gpt-4o") == "gpt-4o"
        assert shorten_model("claude-opus-20240229") == "opus"


class TestUsageSummary:
    """Tests for the usage header row."""

    def test_empty_without_usage(self):
        assert format_usage_summary(AgentInfo(id="a"), 60) == ""

    def test_centered_summary(self):
        agent = AgentInfo(id="a", usage=AgentUsage(input=1200, output=300, cost=0.5))
        line = strip_ansi(format_usage_summary(agent, 60))
        assert line.strip() == "↑1.2k ↓300 total 1.5k cost $0.500"
        assert line.startswith(" " * 13 + "↑")

    def test_cache_counts(self):
        agent = AgentInfo(id="a", usage=AgentUsage(input=1200, output=300, cache_read=2000))
        line = strip_ansi(format_usage_summary(agent, 80)).strip()
        assert line.endswith("cache R2.0k W0")
        assert "total 3.5k" in line


class TestAgentPaneRendering:
    """Tests for windowed log rendering and wheel scrolling."""

    def test_blank_without_agent(self):
        assert AgentPane(FakeRegistry()).render_lines(10, 3, None) == [" " * 10] * 3

    def test_summary_row_then_log_tail(self):
        agent = AgentInfo(id="worker:1", events=log_events(5))
        rows = AgentPane(FakeRegistry(agent)).render_lines(20, 4, "worker:1")
        assert plain(rows) == ["", "2", "3", "4"]
        assert all(visible_width(row) == 20 for row in rows)

    def test_short_log_padded(self):
        agent = AgentInfo(id="worker:1", events=log_events(1))
        rows = AgentPane(FakeRegistry(agent)).render_lines(10, 4, "worker:1")
        assert plain(rows) == ["", "0", "", ""]

    def test_wheel_scrolls_and_stops_following(self):
        agent = AgentInfo(id="worker:1", events=log_events(5))
        dirty = DirtyCounter()
        pane = AgentPane(FakeRegistry(agent), on_dirty=dirty)
        pane.render_lines(20, 4, "worker:1")

        assert pane.handle_mouse(MOUSE_WHEEL_UP, 20, 4, "worker:1")
        assert dirty.count == 1
        assert plain(pane.render_lines(20, 4, "worker:1"))[1:] == ["0", "1", "2"]

        agent.events.extend(log_events(3))
        assert plain(pane.render_lines(20, 4, "worker:1"))[1:] == ["0", "1", "2"]

        assert pane.handle_mouse(MOUSE_WHEEL_DOWN, 20, 4, "worker:1")
        assert pane.handle_mouse(MOUSE_WHEEL_DOWN, 20, 4, "worker:1")
        agent.events.extend(log_events(1))
        assert plain(pane.render_lines(20, 4, "worker:1"))[-1] == "0"

    def test_unhandled_events(self):
        agent = AgentInfo(id="worker:1")
        pane = AgentPane(FakeRegistry(agent))
        assert not pane.handle_mouse("CLICK", 20, 4, "worker:1")
        assert not pane.handle_mouse(MOUSE_WHEEL_UP, 20, 4, None)
        assert not pane.handle_mouse(MOUSE_WHEEL_UP, 20, 1, "worker:1")


class TestTaskUsage:
    """Tests for usage aggregation and durations."""

    def test_sum_over_agents(self):
        agents = [
            AgentInfo(id="a", usage=AgentUsage(input=10, output=5, cost=0.1)),
            AgentInfo(id="b", usage=AgentUsage(input=1, output=1, total_tokens=7)),
        ]
        usage = aggregate_task_usage(agents)
        assert (usage.input, usage.output, usage.total) == (11, 6, 22)

    def test_stored_totals_fallback(self):
        issue = TaskIssue(id="T-1", extra={"usage_totals": {"input": 10, "output": 5, "cost": 0.25}})
        usage = aggregate_task_usage([], issue)
        assert usage.total == 15
        assert usage.cost == 0.25
        assert aggregate_task_usage([], TaskIssue(id="T-2")) is None

    def test_duration_of_finished_agents(self):
        agents = [AgentInfo(id="a", status="done", spawned_at=100, last_activity=160)]
        assert compute_task_duration(agents, now=1000) == 60

    def test_duration_runs_to_now_while_working(self):
        agents = [
            AgentInfo(id="a", status="done", spawned_at=100, last_activity=160),
            AgentInfo(id="b", status="running", spawned_at=120, last_activity=150),
        ]
        assert compute_task_duration(agents, now=400) == 300

    def test_no_duration_without_timestamps(self):
        assert compute_task_duration([AgentInfo(id="a")]) is None

    def test_breakdown_row(self):
        agent = AgentInfo(id="d", role="designer-worker", status="done", spawned_at=10, last_activity=40)
        row = format_agent_breakdown(agent, now=100)
        assert row.startswith("designer   |  done  |")
        assert row.endswith("T30s")


class TestTaskDetailsStates:
    """Tests for the pane's selection states."""

    def test_no_selection(self):
        assert TaskDetailsPane(FakeClient()).build_lines(40) == ["No selection"]

    def test_without_running_loop_nothing_is_scheduled(self):
        client = FakeClient()
        pane = TaskDetailsPane(client)
        assert pane.select("T-1") is None
        assert client.calls == []
        assert plain(pane.build_lines(40)) == ["Loading T-1…"]

    def test_snapshot_shown_until_fetch(self):
        pane = TaskDetailsPane(FakeClient())
        snapshot = sample_issue()
        pane.select("T-1", snapshot)
        assert pane.issue is snapshot

        same = sample_issue()
        pane.select("T-1", same)
        assert pane.issue is snapshot

        updated = sample_issue(updated_at="later")
        pane.select("T-1", updated)
        assert pane.issue is updated

    def test_snapshot_for_other_issue_ignored(self):
        pane = TaskDetailsPane(FakeClient())
        pane.select("T-1", sample_issue(id="T-2"))
        assert pane.issue is None

    def test_issue_view(self):
        pane = TaskDetailsPane(FakeClient())
        pane.select("T-1", sample_issue())
        now = parse_timestamp(COMMENT_TIME) + 120
        assert plain(pane.build_lines(40, now)) == [
            "T-1",
            "Fix",
            "status: open  prio: 1",
            "assignee: (none)",
            "labels: x",
            "",
            "── Description ──",
            "Do it",
            "",
            "comments: 1",
            "- ann 2m ago",
            "  hi",
        ]

    def test_issue_view_with_agents(self):
        agent = AgentInfo(
            id="worker:1",
            task_id="T-1",
            status="done",
            spawned_at=100,
            last_activity=160,
            usage=AgentUsage(input=1000, output=500),
        )
        pane = TaskDetailsPane(FakeClient(), registry=FakeRegistry(agent))
        pane.select("T-1", sample_issue(comments=[]))
        lines = plain(pane.build_lines(60, now=1000))
        assert "task duration: 1m 0s" in lines
        assert "agent usage: 1  ↑1.0k ↓500  total:1.5k" in lines
        assert "cost: $0.000" in lines
        assert "── Agents ──" in lines
        assert lines[-1] == "comments: (none)"

    def test_only_recent_comments(self):
        comments = [TaskComment("bot", f"c{i}") for i in range(12)]
        pane = TaskDetailsPane(FakeClient())
        pane.select("T-1", sample_issue(comments=comments, description=None))
        lines = plain(pane.build_lines(40))
        assert "comments: 12" in lines
        assert "  c1" not in lines
        assert "  c2" in lines
        assert lines[-1] == "  c11"

    def test_scrolling(self):
        dirty = DirtyCounter()
        pane = TaskDetailsPane(FakeClient(), on_dirty=dirty)
        pane.select("T-1", sample_issue())
        now = parse_timestamp(COMMENT_TIME) + 120
        pane.render_lines(20, 3, now)
        assert pane.handle_mouse(MOUSE_WHEEL_DOWN)
        assert dirty.count == 1
        assert plain(pane.render_lines(20, 3, now)) == ["assignee: (none)", "labels: x", ""]
        assert not pane.handle_mouse("CLICK")


class TestTaskDetailsFetch:
    """Tests for asynchronous fetching."""

    @pytest.mark.asyncio
    async def test_fetch_fills_issue(self):
        issue = sample_issue()
        dirty = DirtyCounter()
        pane = TaskDetailsPane(FakeClient({"T-1": issue}), on_dirty=dirty)
        await pane.select("T-1")
        assert pane.issue is issue
        assert dirty.count == 1

    @pytest.mark.asyncio
    async def test_fetch_error(self):
        pane = TaskDetailsPane(FakeClient(error=RuntimeError("boom")))
        await pane.select("T-1")
        assert plain(pane.build_lines(40)) == ["Error loading T-1", "boom"]

    @pytest.mark.asyncio
    async def test_error_without_message_uses_class_name(self):
        pane = TaskDetailsPane(FakeClient(error=LookupError()))
        await pane.select("T-1")
        assert pane.error == "LookupError"

    @pytest.mark.asyncio
    async def test_stale_fetch_is_discarded(self):
        gate = asyncio.Event()
        client = FakeClient({"T-1": sample_issue(), "T-2": sample_issue(id="T-2")}, gates={"T-1": gate})
        pane = TaskDetailsPane(client)
        first = pane.select("T-1")
        second = pane.select("T-2")
        await second
        assert pane.issue.id == "T-2"

        gate.set()
        await first
        assert pane.issue.id == "T-2"
        assert client.calls == ["T-1", "T-2"]

    @pytest.mark.asyncio
    async def test_older_request_for_same_issue_loses(self):
        gate = asyncio.Event()
        stale = sample_issue(title="old")
        fresh = sample_issue(title="new")
        client = FakeClient({"T-1": stale}, gates={"T-1": gate})
        pane = TaskDetailsPane(client)
        pane.selected_id = "T-1"
        slow = asyncio.ensure_future(pane.fetch("T-1"))
        await asyncio.sleep(0)

        client.gates = {}
        client.issues = {"T-1": fresh}
        await pane.fetch("T-1")
        gate.set()
        await slow
        assert pane.issue.title == "new"
