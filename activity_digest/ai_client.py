"""Claude-backed completion backend for the classifier.

Authentication (resolution order):
1. ANTHROPIC_API_KEY env var  → uses the anthropic Python SDK directly
2. claude-agent-sdk          → uses whatever auth Claude Code has configured
   (subscription, CLAUDE_CODE_OAUTH_TOKEN, etc.)

Responses are requested as JSON, extracted from the reply text, and
validated against the caller's JSON schema. A reply that fails to parse or
validate is retried once with a correction prompt.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Optional

import jsonschema

logger = logging.getLogger("activity_digest.ai_client")

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_LOW_EFFORT_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_MAX_TOKENS = 1024

_JSON_FORMAT = (
    "Return valid JSON only, no markdown fences, no explanation. "
    "Your response must validate against this JSON schema:\n"
)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)


def _extract_json(text: str) -> str:
    """Extract a JSON object from an AI response.

    Tries in order:
    1. Direct parse of the full text (clean JSON response).
    2. Extract content from markdown code fences (```json ... ```).
    3. Find the first ``{`` and last ``}`` and use that substring.
    """
    stripped = text.strip()

    try:
        json.loads(stripped)
        return stripped
    except (json.JSONDecodeError, ValueError):
        pass

    match = _FENCED_JSON_RE.search(stripped)
    if match:
        return match.group(1).strip()

    start = stripped.find("{")
    end = stripped.rfind("}")
    if start != -1 and end > start:
        return stripped[start:end + 1]

    # Give up; the caller raises a clear error on the original text
    return stripped


def _parse_and_validate(text: str, schema: dict) -> dict:
    """Extract JSON from AI text and validate it against ``schema``.

    Raises RuntimeError if extraction or validation fails.
    """
    logger.debug("Raw AI response (%d chars): %.500s", len(text), text)
    stripped = _extract_json(text)

    try:
        parsed = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Failed to parse Claude response as JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise RuntimeError(
            f"Claude response is not a JSON object (got {type(parsed).__name__})"
        )

    try:
        jsonschema.validate(instance=parsed, schema=schema)
    except jsonschema.ValidationError as e:
        raise RuntimeError(f"Response failed schema validation: {e.message}") from e
    return parsed


def _split_messages(messages: list[dict]) -> tuple[str, list[dict]]:
    """Separate system messages from the conversation turns."""
    system_parts = [m["content"] for m in messages if m["role"] == "system"]
    turns = [
        {"role": m["role"], "content": m["content"]}
        for m in messages if m["role"] != "system"
    ]
    return "\n\n".join(system_parts), turns


class ClaudeCompletion:
    """Completion backend on the Anthropic API or the Claude Agent SDK.

    Args:
        model: Model used for normal-effort calls.
        low_effort_model: Model used when ``effort == "low"``.
        api_key: Anthropic API key. Defaults to ``ANTHROPIC_API_KEY``; when
            empty, calls go through claude-agent-sdk.
        timeout: Per-request timeout in seconds (SDK backend).

    The anthropic client is created on first use and shared by all calls;
    await :meth:`aclose` when done.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        low_effort_model: str = DEFAULT_LOW_EFFORT_MODEL,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
    ):
        self.model = model
        self.low_effort_model = low_effort_model
        self.api_key = api_key if api_key is not None else os.environ.get("ANTHROPIC_API_KEY", "")
        self.timeout = timeout
        self._client = None

    async def aclose(self) -> None:
        """Close the shared anthropic client, if one was opened."""
        if self._client is not None:
            client, self._client = self._client, None
            await client.close()

    def _model_for(self, effort: str) -> str:
        return self.low_effort_model if effort == "low" else self.model

    async def complete(
        self,
        messages: list[dict],
        *,
        schema: dict,
        max_tokens: Optional[int] = None,
        context: str = "",
        effort: str = "medium",
    ) -> dict:
        """Run a structured completion and return the validated JSON object.

        Raises:
            RuntimeError: If the backend fails or the reply is still
                invalid after one correction attempt.
        """
        model = self._model_for(effort)
        system_prompt, turns = _split_messages(messages)
        system_prompt = f"{system_prompt}\n\n{_JSON_FORMAT}{json.dumps(schema, indent=2)}".strip()
        max_tokens = max_tokens or DEFAULT_MAX_TOKENS
        logger.debug(
            "Completion [%s]: auth=%s, model=%s, effort=%s",
            context,
            "ANTHROPIC_API_KEY" if self.api_key else "claude-agent-sdk",
            model, effort,
        )

        text = await self._call_backend(model, system_prompt, turns, max_tokens)
        try:
            return _parse_and_validate(text, schema)
        except RuntimeError as first_error:
            logger.debug("[%s] first attempt failed: %s, retrying", context, first_error)
            correction = (
                "Your previous response could not be parsed. Error:\n"
                f"{first_error}\n\n"
                f"Your response (first 2000 chars):\n{text[:2000]}\n\n"
                f"Expected JSON schema:\n{json.dumps(schema, indent=2)}\n\n"
                "Return ONLY the corrected JSON, no markdown fences, "
                "no explanation, no preamble."
            )
            retry_turns = turns + [
                {"role": "assistant", "content": text or "(empty)"},
                {"role": "user", "content": correction},
            ]
            retry_text = await self._call_backend(model, system_prompt, retry_turns, max_tokens)
            return _parse_and_validate(retry_text, schema)

    async def _call_backend(
        self, model: str, system_prompt: str, turns: list[dict], max_tokens: int,
    ) -> str:
        if self.api_key:
            return await self._call_via_sdk(model, system_prompt, turns, max_tokens)
        return await self._call_via_sdk_agent(model, system_prompt, turns)

    async def _call_via_sdk(
        self, model: str, system_prompt: str, turns: list[dict], max_tokens: int,
    ) -> str:
        """Call Claude via the anthropic Python SDK (API key auth)."""
        import anthropic  # lazy import

        # One client (and connection pool) for every call until aclose()
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                timeout=self.timeout,
                messages=turns,
                system=system_prompt,
            )
        except anthropic.APIError as e:
            logger.debug("Claude SDK API error: %s (%s)", type(e).__name__, e)
            raise RuntimeError(f"Claude API call failed: {e}") from e

        text = ""
        for block in response.content:
            if block.type == "text":
                text += block.text
        logger.debug(
            "Claude SDK response: model=%s, stop=%s, usage=%s, %d chars",
            response.model,
            response.stop_reason,
            f"in={response.usage.input_tokens}/out={response.usage.output_tokens}",
            len(text),
        )
        return text

    async def _call_via_sdk_agent(
        self, model: str, system_prompt: str, turns: list[dict],
    ) -> str:
        """Call Claude via ``claude-agent-sdk`` (subscription / OAuth auth)."""
        from claude_agent_sdk import (  # lazy import
            ClaudeAgentOptions,
            ResultMessage,
            query,
        )

        conversation = "\n\n".join(
            turn["content"] if turn["role"] == "user" else f"[previous reply]\n{turn['content']}"
            for turn in turns
        )
        full_prompt = f"{system_prompt}\n\n{conversation}"
        options = ClaudeAgentOptions(model=model, max_turns=1, allowed_tools=[])

        result_text = ""
        try:
            async for message in query(prompt=full_prompt, options=options):
                logger.debug("Agent SDK message: %s", type(message).__name__)
                if isinstance(message, ResultMessage):
                    result_text = message.result or ""
        except Exception as e:
            logger.debug("Agent SDK error: %s (%s)", type(e).__name__, e)
            raise RuntimeError(f"Claude Agent SDK call failed: {e}") from e

        if not result_text:
            raise RuntimeError("Claude Agent SDK returned empty response")
        return result_text
