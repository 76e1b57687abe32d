"""Pytest hooks: the ``requires_ai`` marker for live Claude round trips."""

from __future__ import annotations

import importlib.util
import os

import pytest


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "requires_ai: needs a live Claude backend for ClaudeCompletion "
        "(ANTHROPIC_API_KEY, or claude-agent-sdk with CLAUDE_CODE_OAUTH_TOKEN)",
    )


def _live_backend_configured() -> bool:
    """Mirror ClaudeCompletion's backend choice: API key first, then the agent SDK."""
    if os.environ.get("ANTHROPIC_API_KEY"):
        return True
    return bool(os.environ.get("CLAUDE_CODE_OAUTH_TOKEN")) and (
        importlib.util.find_spec("claude_agent_sdk") is not None
    )


def pytest_collection_modifyitems(config, items):
    if _live_backend_configured():
        return
    skip = pytest.mark.skip(reason="no live Claude backend configured")
    for item in items:
        if "requires_ai" in item.keywords:
            item.add_marker(skip)
