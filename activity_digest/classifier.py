"""Issue summarization and comment classification.

The report generator talks to a :class:`Classifier`, which has one typed
call per purpose. :class:`PromptClassifier` implements it on top of any
:class:`Completion` backend using the markdown prompts in ``prompts/`` and
the response schemas in ``schemas/``.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Optional, Protocol

import jsonschema

from activity_digest.report_data import (
    ActionNeeded,
    CommentClassification,
    IssueRef,
    OneLineSummary,
)

logger = logging.getLogger("activity_digest.classifier")

MAX_PROMPT_BODY_CHARS = 2000


class Completion(Protocol):
    """A structured-output completion backend."""

    async def complete(
        self,
        messages: list[dict],
        *,
        schema: dict,
        max_tokens: Optional[int] = None,
        context: str = "",
        effort: str = "medium",
    ) -> dict:
        """Return a JSON object matching ``schema``."""
        ...


class Classifier(Protocol):
    """What the report generator needs from the AI layer."""

    async def summarize_issue(self, ref: IssueRef, title: str, body: str) -> OneLineSummary:
        ...

    async def classify_comment(self, body: str, actor: str) -> CommentClassification:
        ...


_prompt_cache: dict[str, str] = {}
_schema_cache: dict[str, dict] = {}

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def _load_prompt(name: str) -> str:
    """Load and cache a prompt template from ``prompts/{name}.md``."""
    if name not in _prompt_cache:
        prompt_path = Path(__file__).parent / "prompts" / f"{name}.md"
        with open(prompt_path) as f:
            _prompt_cache[name] = f.read().strip()
    return _prompt_cache[name]


def _load_schema(name: str) -> dict:
    """Load and cache a response schema from ``schemas/{name}.json``."""
    if name not in _schema_cache:
        schema_path = Path(__file__).parent / "schemas" / f"{name}.json"
        with open(schema_path) as f:
            _schema_cache[name] = json.load(f)
    return _schema_cache[name]


def render_prompt(name: str, **variables) -> str:
    """Load a prompt and substitute its ``{{ name }}`` placeholders.

    Missing or None values become empty strings; non-string values are
    JSON-encoded.
    """
    template = _load_prompt(name)

    def replace(match: re.Match) -> str:
        value = variables.get(match.group(1))
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value)

    return _PLACEHOLDER_RE.sub(replace, template)


def _validated(payload: dict, schema_name: str) -> dict:
    try:
        jsonschema.validate(instance=payload, schema=_load_schema(schema_name))
    except jsonschema.ValidationError as e:
        raise ValueError(f"{schema_name} response failed schema validation: {e.message}") from e
    return payload


class PromptClassifier:
    """Classifier backed by prompt templates and a completion backend."""

    def __init__(self, completion: Completion):
        self._completion = completion

    async def summarize_issue(self, ref: IssueRef, title: str, body: str) -> OneLineSummary:
        """Summarize an issue in one sentence.

        Raises:
            ValueError: If the backend response does not match the schema.
        """
        messages = [
            {"role": "system", "content": render_prompt("summarize-issue-oneline-system")},
            {"role": "user", "content": render_prompt(
                "summarize-issue-oneline-user",
                title=title,
                body=(body or "")[:MAX_PROMPT_BODY_CHARS],
            )},
        ]
        response = await self._completion.complete(
            messages,
            schema=_load_schema("one_line_summary"),
            max_tokens=100,
            context=f"Summarize issue {ref.key}",
            effort="low",
        )
        return OneLineSummary(text=_validated(response, "one_line_summary")["text"])

    async def classify_comment(self, body: str, actor: str) -> CommentClassification:
        """Summarize a comment and decide whether it needs a maintainer.

        Raises:
            ValueError: If the backend response does not match the schema.
        """
        messages = [
            {"role": "system", "content": render_prompt("summarize-comment-system")},
            {"role": "user", "content": render_prompt(
                "summarize-comment-user",
                actor=actor,
                body=body[:MAX_PROMPT_BODY_CHARS],
            )},
        ]
        response = _validated(
            await self._completion.complete(
                messages,
                schema=_load_schema("comment_classification"),
                context=f"Summarize comment by {actor}",
                effort="low",
            ),
            "comment_classification",
        )
        action = response["action_needed"]
        return CommentClassification(
            summary=response["summary"],
            action_needed=(
                ActionNeeded(category=action["category"], reason=action["reason"])
                if action else None
            ),
        )
