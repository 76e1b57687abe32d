"""Coalescing of same-actor metadata bursts.

A maintainer triaging an issue typically adds a couple of labels, sets a
milestone and assigns someone within seconds. Those edits are merged into a
single EventGroup so the report can say it in one sentence.
"""

from __future__ import annotations

from datetime import timedelta
from typing import List, Optional, Union

from activity_digest.report_data import Event, EventGroup, is_metadata

DEFAULT_COALESCE_WINDOW = timedelta(minutes=5)


def coalesce_metadata_events(
    events: List[Event],
    window: Optional[timedelta] = DEFAULT_COALESCE_WINDOW,
) -> List[Union[Event, EventGroup]]:
    """Group consecutive metadata events by the same actor.

    A run grows while the next event is metadata, has the run's actor and,
    when ``window`` is set, follows the previous run member by at most
    ``window``. Non-metadata events are always emitted on their own and
    end any open run.

    Args:
        events: Events sorted ascending by date.
        window: Maximum gap between adjacent run members. ``None`` groups
            on adjacency and actor alone.

    Returns:
        Events and EventGroups in the original order. Runs of length one
        are returned as the bare event.
    """
    result: List[Union[Event, EventGroup]] = []
    i = 0
    while i < len(events):
        event = events[i]
        i += 1
        if not is_metadata(event):
            result.append(event)
            continue

        run = [event]
        while i < len(events):
            candidate = events[i]
            if not is_metadata(candidate) or candidate.actor != event.actor:
                break
            if window is not None and candidate.date - run[-1].date > window:
                break
            run.append(candidate)
            i += 1

        if len(run) == 1:
            result.append(event)
        else:
            result.append(EventGroup(members=tuple(run)))

    return result
