"""Ingestion of GitHub issue JSON into IssueSnapshot objects.

The fetcher stores one JSON document per issue under
``<data_dir>/<owner>/<repo>/<number>.json``. Each document is validated
against ``schemas/issue_snapshot.json`` before it is converted; timeline
entries stay loosely typed here and are normalized by the timeline builder.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import jsonschema

from activity_digest.report_data import (
    Comment,
    IssueInput,
    IssueRef,
    IssueSnapshot,
    RawTimelineEvent,
)

logger = logging.getLogger("activity_digest.snapshot")

_schema_cache: dict | None = None


def _load_schema() -> dict:
    """Load and cache the issue snapshot JSON schema."""
    global _schema_cache
    if _schema_cache is None:
        schema_path = Path(__file__).parent / "schemas" / "issue_snapshot.json"
        with open(schema_path) as f:
            _schema_cache = json.load(f)
    return _schema_cache


def parse_timestamp(value: str) -> datetime:
    """Parse a GitHub ISO-8601 timestamp into an aware datetime.

    A trailing ``Z`` is accepted; naive values are taken as UTC.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_timestamp(value) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


def _login(value) -> Optional[str]:
    """Return ``value["login"]`` when present, else None."""
    if isinstance(value, dict):
        login = value.get("login")
        if isinstance(login, str) and login:
            return login
    return None


def _nested_str(value, key: str) -> Optional[str]:
    if isinstance(value, dict):
        inner = value.get(key)
        if isinstance(inner, str) and inner:
            return inner
    return None


def _parse_timeline_event(raw: dict) -> Optional[RawTimelineEvent]:
    """Convert one timeline entry, or None if it has no kind or date."""
    kind = raw.get("event")
    created_at = _optional_timestamp(raw.get("created_at"))
    if not isinstance(kind, str) or created_at is None:
        return None
    return RawTimelineEvent(
        event=kind,
        created_at=created_at,
        actor=_login(raw.get("actor")),
        label=_nested_str(raw.get("label"), "name"),
        milestone=_nested_str(raw.get("milestone"), "title"),
        assignee=_login(raw.get("assignee")),
    )


def parse_issue(data: dict) -> IssueSnapshot:
    """Validate and convert a GitHub issue JSON document.

    Args:
        data: Decoded JSON object as written by the issue fetcher.

    Returns:
        The IssueSnapshot. Timeline entries without a kind or a parseable
        date are dropped.

    Raises:
        ValueError: If the document does not match the snapshot schema or
            carries an unparseable creation/comment timestamp.
    """
    try:
        jsonschema.validate(instance=data, schema=_load_schema())
    except jsonschema.ValidationError as e:
        raise ValueError(f"Issue snapshot failed schema validation: {e.message}") from e

    comments = [
        Comment(
            id=c["id"],
            body=c.get("body") or "",
            user=c["user"]["login"],
            author_association=c.get("author_association") or "NONE",
            created_at=parse_timestamp(c["created_at"]),
        )
        for c in data.get("comments") or []
    ]

    timeline: list[RawTimelineEvent] = []
    for raw in data.get("timeline_events") or []:
        event = _parse_timeline_event(raw)
        if event is None:
            logger.debug("Dropping malformed timeline entry: %.200r", raw)
            continue
        timeline.append(event)

    milestone = data.get("milestone")
    return IssueSnapshot(
        title=data["title"],
        body=data.get("body") or "",
        author=data["user"]["login"],
        state=data.get("state") or "open",
        labels=[label["name"] for label in data.get("labels") or []],
        milestone=milestone["title"] if milestone else None,
        assignees=[a["login"] for a in data.get("assignees") or []],
        created_at=parse_timestamp(data["created_at"]),
        closed_at=_optional_timestamp(data.get("closed_at")),
        updated_at=_optional_timestamp(data.get("updated_at")),
        is_pull_request=bool(data.get("is_pull_request", False)),
        comments=comments,
        timeline_events=timeline,
    )


def load_issue_dir(data_dir: str, owner: str, repo: str) -> list[IssueInput]:
    """Load every issue snapshot stored for ``owner/repo``.

    Files are read from ``<data_dir>/<owner>/<repo>/`` (lower-cased path
    components); ``*.embeddings.json`` side files are ignored. Files that
    cannot be read or parsed are logged and skipped.

    Returns:
        IssueInput list sorted by issue number. Empty if the directory
        does not exist.
    """
    repo_dir = os.path.join(data_dir, owner.lower(), repo.lower())
    if not os.path.isdir(repo_dir):
        logger.warning("No issue data found in %s", repo_dir)
        return []

    result: list[IssueInput] = []
    for name in sorted(os.listdir(repo_dir)):
        if not name.endswith(".json") or name.endswith(".embeddings.json"):
            continue
        path = os.path.join(repo_dir, name)
        try:
            number = int(name[: -len(".json")])
        except ValueError:
            logger.warning("Skipping %s: file name is not an issue number", path)
            continue
        try:
            with open(path, "r", encoding="utf-8") as f:
                issue = parse_issue(json.load(f))
        except (OSError, ValueError) as e:
            logger.warning("Failed to load issue file %s: %s", path, e)
            continue
        result.append(IssueInput(ref=IssueRef(owner=owner, repo=repo, number=number), issue=issue))

    result.sort(key=lambda item: item.ref.number)
    logger.debug("Loaded %d issue snapshots from %s", len(result), repo_dir)
    return result
