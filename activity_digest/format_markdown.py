"""Markdown formatter for the activity digest."""

from __future__ import annotations

from datetime import date

from activity_digest.report_data import ActionItem, IssueSection, Report

_DAY_NAMES = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
)
_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June", "July",
    "August", "September", "October", "November", "December",
)
_ACTION_GROUPS = (
    ("moderation", "Moderation"),
    ("response", "Response Recommended"),
)


def day_suffix(day: int) -> str:
    """English ordinal suffix for a day of the month."""
    if 11 <= day <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")


def long_date(value: date) -> str:
    """Format a date as e.g. ``Tuesday, October 7th, 2025``."""
    return (
        f"{_DAY_NAMES[value.weekday()]}, {_MONTH_NAMES[value.month - 1]} "
        f"{value.day}{day_suffix(value.day)}, {value.year}"
    )


def format_markdown(report: Report) -> str:
    """Render the report as a Markdown string.

    Args:
        report: Complete report with sections already rendered.

    Returns:
        The full Markdown document.
    """
    lines: list[str] = [
        f"# Report for {report.date.isoformat()} ({long_date(report.date)})",
        "",
        f"{report.user_count} different users commented on "
        f"{report.issue_count} different issues.",
        "",
    ]

    if report.action_items:
        lines.append("## Recommended Actions")
        lines.append("")
        for category, heading in _ACTION_GROUPS:
            items = [a for a in report.action_items if a.category == category]
            if not items:
                continue
            lines.append(f" * {heading}")
            for item in items:
                lines.append(f"    * {_render_action(item)}")
        lines.append("")

    lines.append("## Activity Summary")
    lines.append("")
    for section in report.issue_sections:
        lines.extend(_render_section(section))

    return "\n".join(lines) + "\n"


def _render_action(item: ActionItem) -> str:
    """Render an ActionItem as ``<description> in [ref](url)``."""
    return f"{item.description} in [{item.issue_ref.key}]({item.issue_url})"


def _render_section(section: IssueSection) -> list[str]:
    """Render one issue: linked header, title, summary, then bullets."""
    lines = [
        f"### [{section.kind_label} {section.ref.key}]({section.url})",
        "",
        f"**{section.title}**",
        "",
        f"*{section.summary}*",
        "",
    ]
    lines.extend(f" * {line}" for line in section.lines)
    lines.append("")
    return lines
