"""Structured data model for the activity digest, consumed by all stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class IssueRef:
    """Unique key of an issue or pull request."""
    owner: str
    repo: str
    number: int

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"


@dataclass
class Comment:
    """A single issue comment."""
    id: int
    body: str
    user: str                # commenter login
    author_association: str  # OWNER, MEMBER, CONTRIBUTOR, NONE, ...
    created_at: datetime


@dataclass
class RawTimelineEvent:
    """A timeline entry as delivered by the fetcher; payload fields are optional."""
    event: str
    created_at: datetime
    actor: Optional[str] = None
    label: Optional[str] = None
    milestone: Optional[str] = None
    assignee: Optional[str] = None


@dataclass
class IssueSnapshot:
    """Full state of one issue or PR at fetch time. Read-only to the core."""
    title: str
    author: str
    created_at: datetime
    body: str = ""
    state: str = "open"
    labels: List[str] = field(default_factory=list)
    milestone: Optional[str] = None
    assignees: List[str] = field(default_factory=list)
    closed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_pull_request: bool = False
    comments: List[Comment] = field(default_factory=list)
    timeline_events: List[RawTimelineEvent] = field(default_factory=list)


@dataclass
class IssueInput:
    """An issue snapshot paired with its reference."""
    ref: IssueRef
    issue: IssueSnapshot


# ---------------------------------------------------------------------------
# Event tagged union
# ---------------------------------------------------------------------------

METADATA_KINDS = frozenset({
    "labeled", "unlabeled",
    "milestoned", "demilestoned",
    "assigned", "unassigned",
})


@dataclass(frozen=True)
class CreatedEvent:
    date: datetime
    actor: str
    kind: str = "created"


@dataclass(frozen=True)
class CommentedEvent:
    date: datetime
    actor: str
    body: str
    author_association: str
    comment_id: int
    kind: str = "commented"


@dataclass(frozen=True)
class StateEvent:
    """A ``closed`` or ``reopened`` event."""
    kind: str
    date: datetime
    actor: str


@dataclass(frozen=True)
class LabelEvent:
    """A ``labeled`` or ``unlabeled`` event."""
    kind: str
    date: datetime
    actor: str
    label: str


@dataclass(frozen=True)
class MilestoneEvent:
    """A ``milestoned`` or ``demilestoned`` event."""
    kind: str
    date: datetime
    actor: str
    milestone: str


@dataclass(frozen=True)
class AssigneeEvent:
    """An ``assigned`` or ``unassigned`` event."""
    kind: str
    date: datetime
    actor: str
    assignee: str


Event = Union[CreatedEvent, CommentedEvent, StateEvent, LabelEvent, MilestoneEvent, AssigneeEvent]
MetadataEvent = Union[LabelEvent, MilestoneEvent, AssigneeEvent]


def is_metadata(event: Event) -> bool:
    """True for bookkeeping edits that may be coalesced."""
    return event.kind in METADATA_KINDS


@dataclass(frozen=True)
class EventGroup:
    """Two or more contiguous metadata events by one actor."""
    members: Tuple[MetadataEvent, ...]

    @property
    def date(self) -> datetime:
        return self.members[0].date

    @property
    def actor(self) -> str:
        return self.members[0].actor


# ---------------------------------------------------------------------------
# Classifier responses
# ---------------------------------------------------------------------------

@dataclass
class OneLineSummary:
    """Response of the one-sentence issue summary call."""
    text: str


@dataclass
class ActionNeeded:
    category: str            # "moderation" or "response"
    reason: str


@dataclass
class CommentClassification:
    """Response of the comment classification call."""
    summary: str
    action_needed: Optional[ActionNeeded] = None


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass
class ActionItem:
    """A comment flagged for moderation or a maintainer response."""
    category: str            # "moderation" or "response"
    description: str
    issue_ref: IssueRef
    issue_url: str           # points at the comment


@dataclass
class IssueSection:
    """Rendered activity for a single issue."""
    ref: IssueRef
    url: str
    kind_label: str          # "Issue" or "Pull Request"
    title: str
    summary: str
    lines: List[str] = field(default_factory=list)


@dataclass
class Report:
    """Complete report, produced by the generator and consumed by the formatter."""
    date: date
    user_count: int = 0
    issue_count: int = 0
    action_items: List[ActionItem] = field(default_factory=list)
    issue_sections: List[IssueSection] = field(default_factory=list)
