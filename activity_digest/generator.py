"""Daily activity report generation.

Pipeline per call:
  1. Select issues with activity in ``[start, end)`` and count users/issues
  2. Per issue: build the event timeline, split it around the window and
     coalesce metadata bursts
  3. Render every event or group into one bullet, asking the classifier for
     comment summaries and action items
  4. Assemble the Report and render it to Markdown

Classifier calls are awaited one at a time, in issue order. A failing call
never fails the report: issue summaries fall back to the title, comments to
a plain "commented" line.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Collection, List, Optional, Union

from activity_digest.classifier import Classifier
from activity_digest.coalesce import DEFAULT_COALESCE_WINDOW, coalesce_metadata_events
from activity_digest.format_events import (
    FUTURE_POLICIES,
    comment_outcome,
    format_event,
    format_event_group,
    is_action_eligible,
    is_long_comment,
    time_description,
)
from activity_digest.format_markdown import format_markdown
from activity_digest.report_data import (
    ActionItem,
    CommentClassification,
    CommentedEvent,
    Event,
    EventGroup,
    IssueInput,
    IssueRef,
    IssueSection,
    IssueSnapshot,
    Report,
)
from activity_digest.timeline import DEFAULT_CONTEXT_EVENTS, build_events, split_window
from activity_digest.window import select_active_issues

logger = logging.getLogger("activity_digest.generator")


def issue_url(ref: IssueRef, issue: IssueSnapshot) -> str:
    """HTML URL of an issue or pull request."""
    kind = "pull" if issue.is_pull_request else "issues"
    return f"https://github.com/{ref.owner}/{ref.repo}/{kind}/{ref.number}"


class ReportGenerator:
    """Compiles daily activity digests.

    Args:
        classifier: Summarizes issues and classifies comments.
        bots: Logins whose comments never raise action items.
        coalesce_window: Maximum gap between coalesced metadata events;
            None groups on adjacency alone.
        future_events: Relative-time phrase for events after the report
            day, "later" or "today".
        context_events: Number of pre-window events shown for context.
        tz: Timezone defining calendar days for relative times.
    """

    def __init__(
        self,
        classifier: Classifier,
        bots: Collection[str] = (),
        coalesce_window: Optional[timedelta] = DEFAULT_COALESCE_WINDOW,
        future_events: str = "later",
        context_events: int = DEFAULT_CONTEXT_EVENTS,
        tz: Optional[tzinfo] = None,
    ):
        if future_events not in FUTURE_POLICIES:
            raise ValueError(
                f"future_events must be one of {FUTURE_POLICIES}, got {future_events!r}"
            )
        self.classifier = classifier
        self.bots = frozenset(bots)
        self.coalesce_window = coalesce_window
        self.future_events = future_events
        self.context_events = context_events
        self.tz = tz

    async def generate_daily_report(
        self,
        report_date: date,
        issues: List[IssueInput],
        start: datetime,
        end: datetime,
    ) -> str:
        """Build the markdown digest for one activity window.

        Args:
            report_date: Day the report is for (title and relative times).
            issues: Candidate issues; report sections keep this order.
            start: Inclusive window start.
            end: Exclusive window end.

        Returns:
            The rendered Markdown report.
        """
        report = await self.compile_report(report_date, issues, start, end)
        return format_markdown(report)

    async def compile_report(
        self,
        report_date: date,
        issues: List[IssueInput],
        start: datetime,
        end: datetime,
    ) -> Report:
        """Same as :meth:`generate_daily_report` but returns the Report."""
        if isinstance(report_date, datetime):
            report_date = report_date.date()
        logger.info("Generating activity report for %s", report_date.isoformat())

        selection = select_active_issues(issues, start, end)
        report = Report(
            date=report_date,
            user_count=selection.user_count,
            issue_count=selection.issue_count,
        )

        for item in selection.issues:
            section, actions = await self._build_section(item, report_date, start, end)
            report.issue_sections.append(section)
            report.action_items.extend(actions)

        logger.info(
            "Report for %s: %d sections, %d action items",
            report_date.isoformat(), len(report.issue_sections), len(report.action_items),
        )
        return report

    async def _build_section(
        self,
        item: IssueInput,
        report_date: date,
        start: datetime,
        end: datetime,
    ) -> tuple[IssueSection, list[ActionItem]]:
        ref, issue = item.ref, item.issue
        url = issue_url(ref, issue)
        section = IssueSection(
            ref=ref,
            url=url,
            kind_label="Pull Request" if issue.is_pull_request else "Issue",
            title=issue.title,
            summary=await self._summarize_issue(ref, issue),
        )
        actions: list[ActionItem] = []

        before, during = split_window(build_events(issue), start, end, self.context_events)
        for events, check_for_actions in ((before, False), (during, True)):
            for entry in coalesce_metadata_events(events, self.coalesce_window):
                line, action = await self._render_entry(
                    entry, ref, url, report_date, check_for_actions,
                )
                section.lines.append(line)
                if action is not None:
                    actions.append(action)

        return section, actions

    async def _render_entry(
        self,
        entry: Union[Event, EventGroup],
        ref: IssueRef,
        url: str,
        report_date: date,
        check_for_actions: bool,
    ) -> tuple[str, Optional[ActionItem]]:
        time_desc = time_description(entry.date, report_date, self.future_events, self.tz)

        if isinstance(entry, EventGroup):
            return format_event_group(entry, time_desc), None
        if not isinstance(entry, CommentedEvent):
            return format_event(entry, time_desc), None

        classification = None
        if entry.body.strip() and (
            is_long_comment(entry.body)
            or (check_for_actions and is_action_eligible(entry, self.bots))
        ):
            classification = await self._classify_comment(entry)

        outcome = comment_outcome(
            entry, ref, url, time_desc, classification, check_for_actions, self.bots,
        )
        return outcome.line, outcome.action

    async def _summarize_issue(self, ref: IssueRef, issue: IssueSnapshot) -> str:
        """One-sentence summary, or the title if the classifier fails."""
        try:
            summary = await self.classifier.summarize_issue(ref, issue.title, issue.body)
        except Exception as e:
            logger.warning("Failed to generate one-sentence summary for %s: %s", ref.key, e)
            return issue.title
        return summary.text

    async def _classify_comment(self, event: CommentedEvent) -> Optional[CommentClassification]:
        """Classify a comment; None if the classifier fails."""
        try:
            return await self.classifier.classify_comment(event.body, event.actor)
        except Exception as e:
            logger.warning(
                "Failed to classify comment %s by %s: %s", event.comment_id, event.actor, e,
            )
            return None
