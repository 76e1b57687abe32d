"""Activity window selection.

An issue qualifies for a report when it was created, commented on, closed,
or had a timeline event inside the half-open window ``[start, end)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from activity_digest.report_data import IssueInput

logger = logging.getLogger("activity_digest.window")


def in_window(moment: Optional[datetime], start: datetime, end: datetime) -> bool:
    """True when ``start <= moment < end``."""
    return moment is not None and start <= moment < end


@dataclass
class WindowSelection:
    """Issues with activity in the window plus header statistics."""
    issues: List[IssueInput] = field(default_factory=list)
    users: set = field(default_factory=set)
    issue_keys: set = field(default_factory=set)

    @property
    def user_count(self) -> int:
        return len(self.users)

    @property
    def issue_count(self) -> int:
        return len(self.issue_keys)


def select_active_issues(
    issues: List[IssueInput], start: datetime, end: datetime,
) -> WindowSelection:
    """Filter issues to those with activity in ``[start, end)``.

    Counted users are the authors of in-window comments, plus the issue
    author when the issue itself was created in the window.

    Args:
        issues: Candidate issues, in report order.
        start: Inclusive window start.
        end: Exclusive window end.

    Returns:
        A WindowSelection preserving input order.
    """
    selection = WindowSelection()

    for item in issues:
        issue = item.issue
        created_in_window = in_window(issue.created_at, start, end)
        has_activity = created_in_window

        for comment in issue.comments:
            if in_window(comment.created_at, start, end):
                has_activity = True
                selection.users.add(comment.user)

        if in_window(issue.closed_at, start, end):
            has_activity = True

        if not has_activity:
            has_activity = any(
                in_window(event.created_at, start, end) for event in issue.timeline_events
            )

        if has_activity:
            selection.issues.append(item)
            selection.issue_keys.add(item.ref.key)
            if created_in_window:
                selection.users.add(issue.author)

    logger.info("Found %d issues with activity in time window", len(selection.issues))
    logger.info(
        "%d unique users, %d unique issues",
        selection.user_count, selection.issue_count,
    )
    return selection
