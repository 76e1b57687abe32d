"""Rendering of single events and event groups into markdown bullet text.

Every function here is pure: classifier calls happen in the generator,
which hands the (possibly missing) classification to
:func:`comment_outcome`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Collection, Optional, Union

from activity_digest.report_data import (
    ActionItem,
    AssigneeEvent,
    CommentClassification,
    CommentedEvent,
    CreatedEvent,
    Event,
    EventGroup,
    IssueRef,
    LabelEvent,
    MilestoneEvent,
    StateEvent,
)

LONG_COMMENT_CHARS = 200
MAINTAINER_ASSOCIATIONS = frozenset({"CONTRIBUTOR", "OWNER", "MEMBER"})
FUTURE_POLICIES = ("later", "today")


# ---------------------------------------------------------------------------
# Relative time
# ---------------------------------------------------------------------------

def _calendar_day(value: Union[date, datetime], tz: Optional[tzinfo]) -> date:
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def time_description(
    event_date: Union[date, datetime],
    report_date: Union[date, datetime],
    future: str = "later",
    tz: Optional[tzinfo] = None,
) -> str:
    """Describe how long before the report day an event happened.

    Day granularity: time of day is ignored. Aware datetimes are moved to
    ``tz`` first when one is given.

    Args:
        event_date: When the event happened.
        report_date: The day the report is for.
        future: Phrase for events after the report day ("later" or "today").
        tz: Timezone that defines calendar days.

    Returns:
        A phrase such as "today", "3 days ago" or "2 weeks ago".
    """
    days = (_calendar_day(report_date, tz) - _calendar_day(event_date, tz)).days

    if days < 0:
        return future
    if days == 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days in (7, 14, 21):
        weeks = days // 7
        return f"{weeks} week ago" if weeks == 1 else f"{weeks} weeks ago"
    if 28 <= days < 35:
        return "1 month ago"
    if days < 7:
        return f"{days} days ago"
    if days < 14:
        return "1 week ago"
    if days < 21:
        return "2 weeks ago"
    if days < 28:
        return "3 weeks ago"
    return f"{days // 7} weeks ago"


# ---------------------------------------------------------------------------
# Markdown stripping
# ---------------------------------------------------------------------------

_MD_FENCE_RE = re.compile(r"^\s*(```|~~~).*$", re.MULTILINE)
_MD_IMAGE_RE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_MD_REF_LINK_RE = re.compile(r"\[([^\]]+)\]\[[^\]]*\]")
_MD_HTML_RE = re.compile(r"<[^>]+>")
_MD_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE)
_MD_QUOTE_RE = re.compile(r"^\s*>\s?", re.MULTILINE)
_MD_BULLET_RE = re.compile(r"^\s*(?:[-*+]|\d+\.)\s+", re.MULTILINE)
_MD_BOLD_RE = re.compile(r"(\*\*|__)(?=\S)(.+?)(?<=\S)\1")
_MD_ITALIC_STAR_RE = re.compile(r"\*(?=\S)([^*]+?)(?<=\S)\*")
_MD_ITALIC_UNDERSCORE_RE = re.compile(r"(?<!\w)_(?=\S)([^_]+?)(?<=\S)_(?!\w)")
_MD_STRIKE_RE = re.compile(r"~~(.+?)~~")
_MD_CODE_RE = re.compile(r"`([^`]+)`")
_WHITESPACE_RE = re.compile(r"\s+")


def strip_markdown(text: str) -> str:
    """Remove markdown formatting, returning single-line plain text."""
    text = _MD_FENCE_RE.sub("", text)
    text = _MD_IMAGE_RE.sub(r"\1", text)
    text = _MD_LINK_RE.sub(r"\1", text)
    text = _MD_REF_LINK_RE.sub(r"\1", text)
    text = _MD_HTML_RE.sub("", text)
    text = _MD_HEADING_RE.sub("", text)
    text = _MD_QUOTE_RE.sub("", text)
    text = _MD_BULLET_RE.sub("", text)
    text = _MD_BOLD_RE.sub(r"\2", text)
    text = _MD_ITALIC_STAR_RE.sub(r"\1", text)
    text = _MD_ITALIC_UNDERSCORE_RE.sub(r"\1", text)
    text = _MD_STRIKE_RE.sub(r"\1", text)
    text = _MD_CODE_RE.sub(r"\1", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


# ---------------------------------------------------------------------------
# Single events and groups
# ---------------------------------------------------------------------------

def _bold(name: str) -> str:
    return f"**{name}**"


def _code(name: str) -> str:
    return f"`{name}`"


def oxford_join(parts: list[str]) -> str:
    """Join phrases with commas and a final ", and"."""
    if len(parts) == 1:
        return parts[0]
    return f"{', '.join(parts[:-1])}, and {parts[-1]}"


def format_event(event: Event, time_desc: str) -> str:
    """Render a non-comment event as bullet text."""
    actor = _bold(event.actor)

    if isinstance(event, CreatedEvent):
        phrase = f"created by {actor}"
    elif isinstance(event, StateEvent):
        phrase = f"{actor} {event.kind} the issue"
    elif isinstance(event, LabelEvent):
        verb = "added" if event.kind == "labeled" else "removed"
        phrase = f"{actor} {verb} label {_code(event.label)}"
    elif isinstance(event, MilestoneEvent):
        verb = "added to" if event.kind == "milestoned" else "removed from"
        phrase = f"{actor} {verb} milestone {_code(event.milestone)}"
    elif isinstance(event, AssigneeEvent):
        verb = "assigned to" if event.kind == "assigned" else "unassigned"
        phrase = f"{actor} {verb} {_bold(event.assignee)}"
    else:
        raise TypeError(f"format_event cannot render {event.kind!r} events")

    return f"({time_desc}) {phrase}"


def format_event_group(group: EventGroup, time_desc: str) -> str:
    """Render a coalesced metadata group as one natural-language bullet.

    Example: ``(today) **alice** added labels `Bug`, `Help Wanted`, and set
    milestone to `Backlog```.
    """
    added_labels: list[str] = []
    removed_labels: list[str] = []
    added_milestones: list[str] = []
    removed_milestones: list[str] = []
    assigned: list[str] = []
    unassigned: list[str] = []

    for event in group.members:
        if isinstance(event, LabelEvent):
            (added_labels if event.kind == "labeled" else removed_labels).append(event.label)
        elif isinstance(event, MilestoneEvent):
            (added_milestones if event.kind == "milestoned" else removed_milestones).append(
                event.milestone
            )
        elif isinstance(event, AssigneeEvent):
            (assigned if event.kind == "assigned" else unassigned).append(event.assignee)

    def listing(names: list[str], wrap) -> str:
        return ", ".join(wrap(n) for n in names)

    parts: list[str] = []
    if added_labels:
        noun = "label" if len(added_labels) == 1 else "labels"
        parts.append(f"added {noun} {listing(added_labels, _code)}")
    if removed_labels:
        noun = "label" if len(removed_labels) == 1 else "labels"
        parts.append(f"removed {noun} {listing(removed_labels, _code)}")
    if added_milestones:
        noun = "milestone" if len(added_milestones) == 1 else "milestones"
        parts.append(f"set {noun} to {listing(added_milestones, _code)}")
    if removed_milestones:
        noun = "milestone" if len(removed_milestones) == 1 else "milestones"
        parts.append(f"removed from {noun} {listing(removed_milestones, _code)}")
    if assigned:
        parts.append(f"assigned to {listing(assigned, _bold)}")
    if unassigned:
        parts.append(f"unassigned {listing(unassigned, _bold)}")

    return f"({time_desc}) {_bold(group.actor)} {oxford_join(parts)}"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

@dataclass
class CommentOutcome:
    """Rendered comment line and the action item it raised, if any."""
    line: str
    action: Optional[ActionItem] = None


def is_long_comment(body: str) -> bool:
    """Long comments are summarized instead of quoted."""
    return len(body) > LONG_COMMENT_CHARS or "\n" in body


def comment_url(issue_url: str, comment_id: int) -> str:
    return f"{issue_url}#issuecomment-{comment_id}" if comment_id else issue_url


def is_action_eligible(event: CommentedEvent, bots: Collection[str]) -> bool:
    """Only outside, non-bot commenters can raise action items."""
    association = event.author_association or "NONE"
    return event.actor not in bots and association not in MAINTAINER_ASSOCIATIONS


def fallback_comment_line(event: CommentedEvent, url: str, time_desc: str) -> str:
    """Line used when a comment cannot be summarized."""
    return f"[{time_desc}]({url}) {_bold(event.actor)} commented"


def comment_outcome(
    event: CommentedEvent,
    ref: IssueRef,
    issue_url: str,
    time_desc: str,
    classification: Optional[CommentClassification],
    check_for_actions: bool,
    bots: Collection[str] = (),
) -> CommentOutcome:
    """Combine a comment with its classification into a bullet and action.

    Args:
        event: The comment.
        ref: Issue the comment belongs to.
        issue_url: HTML URL of the issue.
        time_desc: Relative time phrase for the comment.
        classification: Classifier result, or None when it was not
            requested or failed.
        check_for_actions: Whether this comment may raise an action item.
        bots: Logins never credited with action items.

    Returns:
        The CommentOutcome. Long comments without a classification and
        empty comments render via :func:`fallback_comment_line`.
    """
    url = comment_url(issue_url, event.comment_id)

    if not event.body.strip():
        return CommentOutcome(line=fallback_comment_line(event, url, time_desc))

    if is_long_comment(event.body):
        if classification is None:
            return CommentOutcome(line=fallback_comment_line(event, url, time_desc))
        line = f"[{time_desc}]({url}) {_bold(event.actor)} {classification.summary}"
    else:
        line = f'[{time_desc}]({url}) {_bold(event.actor)} said "{strip_markdown(event.body)}"'

    action = None
    if (
        check_for_actions
        and classification is not None
        and classification.action_needed is not None
        and is_action_eligible(event, bots)
    ):
        action = ActionItem(
            category=classification.action_needed.category,
            description=classification.action_needed.reason,
            issue_ref=ref,
            issue_url=url,
        )
    return CommentOutcome(line=line, action=action)
