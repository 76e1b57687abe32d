"""Unit tests for activity_digest/coalesce.py.

Run with: python3 -m pytest tests/test_coalesce.py -v
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from activity_digest.coalesce import coalesce_metadata_events
from activity_digest.report_data import (
    AssigneeEvent,
    CommentedEvent,
    EventGroup,
    LabelEvent,
    MilestoneEvent,
    StateEvent,
)

T0 = datetime(2024, 1, 2, 17, 0, tzinfo=timezone.utc)


def _at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


def _label(actor, name, seconds, kind="labeled") -> LabelEvent:
    return LabelEvent(kind=kind, date=_at(seconds), actor=actor, label=name)


def _comment(actor, seconds) -> CommentedEvent:
    return CommentedEvent(date=_at(seconds), actor=actor, body="hi",
                          author_association="NONE", comment_id=1)


class TestCoalesceMetadataEvents:
    """Grouping of same-actor metadata bursts."""

    def test_same_actor_burst_becomes_one_group(self):
        events = [
            _label("alice", "Bug", 0),
            _label("alice", "Help Wanted", 2),
            MilestoneEvent(kind="milestoned", date=_at(5), actor="alice", milestone="Backlog"),
        ]
        result = coalesce_metadata_events(events)
        assert len(result) == 1
        assert isinstance(result[0], EventGroup)
        assert result[0].members == tuple(events)
        assert result[0].actor == "alice"
        assert result[0].date == events[0].date

    def test_actor_change_breaks_run(self):
        events = [_label("alice", "Bug", 0), _label("bob", "Help Wanted", 1)]
        assert coalesce_metadata_events(events) == events

    def test_comment_breaks_run(self):
        events = [_label("alice", "Bug", 0), _comment("alice", 1), _label("alice", "Help Wanted", 2)]
        assert coalesce_metadata_events(events) == events

    def test_close_breaks_run(self):
        events = [
            _label("alice", "Bug", 0),
            StateEvent(kind="closed", date=_at(1), actor="alice"),
            _label("alice", "Duplicate", 2),
        ]
        assert coalesce_metadata_events(events) == events

    def test_single_metadata_event_stays_bare(self):
        events = [_label("alice", "Bug", 0)]
        result = coalesce_metadata_events(events)
        assert result == events
        assert not isinstance(result[0], EventGroup)

    def test_gap_over_window_breaks_run(self):
        events = [_label("alice", "Bug", 0), _label("alice", "Help Wanted", 301)]
        assert coalesce_metadata_events(events) == events

    def test_gap_measured_from_previous_member(self):
        events = [
            _label("alice", "A", 0),
            _label("alice", "B", 240),
            _label("alice", "C", 480),
        ]
        result = coalesce_metadata_events(events)
        assert len(result) == 1
        assert len(result[0].members) == 3

    def test_gap_exactly_at_window_is_merged(self):
        events = [_label("alice", "A", 0), _label("alice", "B", 300)]
        assert len(coalesce_metadata_events(events)) == 1

    def test_no_window_groups_on_adjacency(self):
        events = [_label("alice", "A", 0), _label("alice", "B", 86400)]
        result = coalesce_metadata_events(events, window=None)
        assert len(result) == 1
        assert isinstance(result[0], EventGroup)

    def test_custom_window(self):
        events = [_label("alice", "A", 0), _label("alice", "B", 30)]
        result = coalesce_metadata_events(events, window=timedelta(seconds=10))
        assert result == events

    def test_mixed_stream_preserves_order(self):
        a1 = _label("alice", "A", 0)
        a2 = AssigneeEvent(kind="assigned", date=_at(1), actor="alice", assignee="carol")
        c = _comment("bob", 2)
        b1 = _label("bob", "B", 3)
        result = coalesce_metadata_events([a1, a2, c, b1])
        assert len(result) == 3
        assert isinstance(result[0], EventGroup)
        assert result[1] is c
        assert result[2] is b1

    def test_empty_input(self):
        assert coalesce_metadata_events([]) == []
