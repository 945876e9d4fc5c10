"""Tests for number, time and record helpers."""

import pytest

from oms_tui.models import AgentInfo, AgentUsage, TaskIssue
from oms_tui.ui_utils import (
    center_pad,
    format_compact_duration,
    format_relative_time,
    format_tokens,
    format_usd,
    format_verbose_duration,
    parse_timestamp,
)


@pytest.mark.parametrize(
    "count, expected",
    [(0, "0"), (999, "999"), (1234, "1.2k"), (15400, "15k"), (1_500_000, "1.5M"), (15_000_000, "15M")],
)
def test_format_tokens(count, expected):
    assert format_tokens(count) == expected


def test_format_usd():
    assert format_usd(0) == "$0.000"
    assert format_usd(0.1234) == "$0.123"
    assert format_usd(12.5) == "$12.50"


class TestDurations:
    """Tests for duration formatting."""

    def test_verbose(self):
        assert format_verbose_duration(0) == "0s"
        assert format_verbose_duration(59) == "59s"
        assert format_verbose_duration(3661) == "1h 1m 1s"
        assert format_verbose_duration(86400) == "1d 0h 0m 0s"

    def test_compact_is_three_columns(self):
        assert format_compact_duration(5) == " 5s"
        assert format_compact_duration(720) == "12m"
        assert format_compact_duration(3 * 3600) == " 3h"
        assert format_compact_duration(10 ** 9) == "99d"


class TestTimestamps:
    """Tests for ISO timestamp handling."""

    def test_zulu_suffix(self):
        assert parse_timestamp("1970-01-01T00:01:00Z") == 60

    def test_invalid(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(None) is None

    def test_relative(self):
        base = parse_timestamp("2026-01-01T00:00:00Z")
        assert format_relative_time("2026-01-01T00:00:00Z", base + 5) == "5s ago"
        assert format_relative_time("2026-01-01T00:00:00Z", base + 7200) == "2h ago"
        assert format_relative_time("2026-01-01T00:00:00Z", base + 90000) == "1d ago"
        assert format_relative_time("garbage", base) == "garbage"


def test_center_pad():
    assert center_pad("ab", 6) == "  ab  "
    assert center_pad("abcdef", 3) == "abc"


class TestRecords:
    """Tests for building models from loosely-typed records."""

    def test_agent_from_dict(self):
        agent = AgentInfo.from_dict({
            "id": "worker:2",
            "role": "worker",
            "usage": {"input": 5, "output": 3, "cacheRead": 2, "cost": "free"},
            "contextWindow": 1000,
            "contextTokens": True,
            "events": "not a list",
        })
        assert agent.usage == AgentUsage(input=5, output=3, cache_read=2)
        assert agent.usage.total == 10
        assert agent.context_window == 1000
        assert agent.context_tokens is None
        assert agent.events == []

    def test_issue_from_dict_keeps_unknown_fields(self):
        issue = TaskIssue.from_dict({
            "id": "T-1",
            "priority": True,
            "dependsOnIds": ["T-0"],
            "comments": [{"author": "a", "text": "b"}, "junk"],
            "usage_totals": {"input": 1},
        })
        assert issue.priority is None
        assert issue.depends_on_ids == ["T-0"]
        assert [c.author for c in issue.comments] == ["a", ""]
        assert issue.extra == {"usage_totals": {"input": 1}}

    def test_snapshot_key_tracks_changes(self):
        issue = TaskIssue(id="T-1", status="open")
        changed = TaskIssue(id="T-1", status="closed")
        assert issue.snapshot_key() != changed.snapshot_key()
