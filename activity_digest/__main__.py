#!/usr/bin/env python3
"""Daily activity digest generator for a GitHub repository.

Reads issue snapshots previously stored by the fetcher under
``<data_dir>/<owner>/<repo>/`` and writes one Markdown report per day to
``<reports_dir>/<owner>/<repo>/<yyyy-mm-dd>.md``. Each day's window runs
from ``window_hour`` local time to the same hour the next day.
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import date, datetime, timedelta, tzinfo

from activity_digest.ai_client import ClaudeCompletion
from activity_digest.classifier import PromptClassifier
from activity_digest.config import Config, load_config
from activity_digest.generator import ReportGenerator
from activity_digest.snapshot import load_issue_dir

logger = logging.getLogger("activity_digest.main")


def report_window(day: date, tz: tzinfo, hour: int) -> tuple:
    """Return ``(start, end)`` for a report day, DST-aware in ``tz``."""
    start = datetime(day.year, day.month, day.day, hour, tzinfo=tz)
    following = day + timedelta(days=1)
    end = datetime(following.year, following.month, following.day, hour, tzinfo=tz)
    return start, end


def report_days(today: date, days: int) -> list:
    """Report days, most recent first: yesterday back ``days`` days."""
    return [today - timedelta(days=n) for n in range(1, days + 1)]


def candidate_issues(issues: list, start: datetime) -> list:
    """Issues updated at or after ``start``; unknown update times are kept."""
    return [
        item for item in issues
        if item.issue.updated_at is None or item.issue.updated_at >= start
    ]


def report_path(reports_dir: str, owner: str, repo: str, day: date) -> str:
    return os.path.join(reports_dir, owner, repo, f"{day.isoformat()}.md")


def build_completion(cfg: Config) -> ClaudeCompletion:
    return ClaudeCompletion(model=cfg.model, low_effort_model=cfg.low_effort_model)


def build_generator(cfg: Config, completion: ClaudeCompletion) -> ReportGenerator:
    """Wire the classifier and generator from config."""
    return ReportGenerator(
        PromptClassifier(completion),
        bots=cfg.bots,
        coalesce_window=cfg.coalesce_window,
        future_events=cfg.future_events,
        context_events=cfg.context_events,
        tz=cfg.tz,
    )


async def generate_reports(
    generator: ReportGenerator,
    issues: list,
    days: list,
    tz: tzinfo,
    window_hour: int,
    completion=None,
) -> list:
    """Generate reports for each day; days without candidates are skipped.

    ``completion``, when given, is closed once all days are processed, even
    if generation fails.

    Returns:
        List of ``(day, markdown)`` tuples in ``days`` order.
    """
    reports = []
    try:
        for day in days:
            start, end = report_window(day, tz, window_hour)
            logger.info("Processing %s: %s to %s", day.isoformat(), start.isoformat(), end.isoformat())
            relevant = candidate_issues(issues, start)
            if not relevant:
                logger.info("No activity to report for %s", day.isoformat())
                continue
            markdown = await generator.generate_daily_report(day, relevant, start, end)
            reports.append((day, markdown))
    finally:
        if completion is not None:
            await completion.aclose()
    return reports


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Generate daily activity digests for a GitHub repository",
        epilog="Issue snapshots must already be fetched into the data directory.",
    )
    parser.add_argument("repository", help="repository as owner/repo")
    parser.add_argument("--config", dest="config_path", default=None, help="path to YAML config file (default: ~/.config/activity-digest/config.yaml)")
    parser.add_argument("--days", type=int, default=None, help="number of days to report, ending yesterday (default: config, 7)")
    parser.add_argument("--date", default=None, help="single report day, YYYY-MM-DD; mutually exclusive with --days")
    parser.add_argument("--stdout", action="store_true", default=False, help="print reports instead of writing files (default: %(default)s)")
    parser.add_argument("--verbose", "-v", action="store_true", default=False, help="enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    owner, _, repo = args.repository.partition("/")
    if not owner or not repo or "/" in repo:
        print("Error: Invalid repository format. Use: owner/repo", file=sys.stderr)
        sys.exit(1)

    if args.date and args.days is not None:
        print("Error: --date cannot be combined with --days.", file=sys.stderr)
        sys.exit(1)

    if args.days is not None and args.days < 1:
        print("Error: --days must be at least 1.", file=sys.stderr)
        sys.exit(1)

    cfg = load_config(args.config_path)

    if args.date:
        try:
            days = [datetime.strptime(args.date, "%Y-%m-%d").date()]
        except ValueError:
            print(f"Error: Invalid date format '{args.date}' for --date. Use YYYY-MM-DD.", file=sys.stderr)
            sys.exit(1)
    else:
        today = datetime.now(cfg.tz).date()
        days = report_days(today, args.days or cfg.days)

    issues = load_issue_dir(cfg.data_dir, owner, repo)
    if not issues:
        print(f"Error: no issue snapshots for {owner}/{repo} in {cfg.data_dir}. Fetch issues first.", file=sys.stderr)
        sys.exit(1)

    completion = build_completion(cfg)
    generator = build_generator(cfg, completion)
    reports = asyncio.run(generate_reports(
        generator, issues, days, cfg.tz, cfg.window_hour, completion=completion,
    ))

    for day, markdown in reports:
        if args.stdout:
            print(markdown)
            continue
        path = report_path(cfg.reports_dir, owner, repo, day)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(markdown)
        print(f"Wrote report to {path}", file=sys.stderr)

    print(f"Generated {len(reports)} reports", file=sys.stderr)


if __name__ == "__main__":
    main()
