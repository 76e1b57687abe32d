"""Event timeline builder.

Merges an issue's creation, comments and timeline events into a single
chronologically sorted list of tagged events.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from activity_digest.report_data import (
    AssigneeEvent,
    CommentedEvent,
    CreatedEvent,
    Event,
    IssueSnapshot,
    LabelEvent,
    MilestoneEvent,
    RawTimelineEvent,
    StateEvent,
)
from activity_digest.window import in_window

logger = logging.getLogger("activity_digest.timeline")

UNKNOWN_ACTOR = "unknown"
DEFAULT_CONTEXT_EVENTS = 3


def normalize_timeline_event(raw: RawTimelineEvent) -> Optional[Event]:
    """Map a raw timeline entry to its tagged event.

    Returns None for kinds outside the report vocabulary and for entries
    missing the payload their kind requires (a ``labeled`` entry without a
    label name, for instance).
    """
    actor = raw.actor or UNKNOWN_ACTOR
    kind = raw.event

    if kind in ("closed", "reopened"):
        return StateEvent(kind=kind, date=raw.created_at, actor=actor)
    if kind in ("labeled", "unlabeled") and raw.label:
        return LabelEvent(kind=kind, date=raw.created_at, actor=actor, label=raw.label)
    if kind in ("milestoned", "demilestoned") and raw.milestone:
        return MilestoneEvent(kind=kind, date=raw.created_at, actor=actor, milestone=raw.milestone)
    if kind in ("assigned", "unassigned") and raw.assignee:
        return AssigneeEvent(kind=kind, date=raw.created_at, actor=actor, assignee=raw.assignee)
    return None


def build_events(issue: IssueSnapshot) -> List[Event]:
    """Build the unified, time-sorted event list for one issue.

    Ties keep encounter order: creation first, then comments, then timeline
    events, each in source order (``sorted`` is stable).
    """
    events: List[Event] = [CreatedEvent(date=issue.created_at, actor=issue.author)]

    for comment in issue.comments:
        events.append(CommentedEvent(
            date=comment.created_at,
            actor=comment.user,
            body=comment.body,
            author_association=comment.author_association,
            comment_id=comment.id,
        ))

    dropped = 0
    for raw in issue.timeline_events:
        event = normalize_timeline_event(raw)
        if event is None:
            dropped += 1
            continue
        events.append(event)
    if dropped:
        logger.debug("Ignored %d timeline entries without a reportable payload", dropped)

    return sorted(events, key=lambda e: e.date)


def split_window(
    events: List[Event],
    start: datetime,
    end: datetime,
    context: int = DEFAULT_CONTEXT_EVENTS,
) -> tuple[List[Event], List[Event]]:
    """Split sorted events into recent context and in-window events.

    Args:
        events: Output of :func:`build_events`.
        start: Inclusive window start.
        end: Exclusive window end.
        context: How many of the latest pre-window events to keep.

    Returns:
        ``(events_before_window, events_in_window)``.
    """
    before = [e for e in events if e.date < start]
    before = before[-context:] if context > 0 else []
    during = [e for e in events if in_window(e.date, start, end)]
    return before, during
