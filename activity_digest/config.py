"""Configuration loader for activity-digest.

Reads YAML configuration from ~/.config/activity-digest/config.yaml (or a
custom path) and provides a dataclass with the report policies, the report
window definition and the AI model settings.

Requires PyYAML (pip install pyyaml).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from activity_digest.ai_client import DEFAULT_LOW_EFFORT_MODEL, DEFAULT_MODEL

logger = logging.getLogger("activity_digest.config")

# Default bots whose comments never raise action items
DEFAULT_BOTS: list[str] = [
    "github-actions",
    "dependabot",
    "typescript-bot",
    "copilot-pull-request-reviewer",
]

DEFAULT_CONFIG_PATH = os.path.expanduser("~/.config/activity-digest/config.yaml")
DEFAULT_TIMEZONE = "America/Los_Angeles"
DEFAULT_COALESCE_MINUTES = 5


@dataclass
class Config:
    """Top-level application configuration."""

    bots: List[str] = field(default_factory=lambda: list(DEFAULT_BOTS))
    coalesce_minutes: Optional[float] = DEFAULT_COALESCE_MINUTES  # None: adjacency only
    future_events: str = "later"
    context_events: int = 3
    timezone: str = DEFAULT_TIMEZONE
    window_hour: int = 8
    days: int = 7
    data_dir: str = ".data"
    reports_dir: str = ".reports"
    model: str = DEFAULT_MODEL
    low_effort_model: str = DEFAULT_LOW_EFFORT_MODEL

    @property
    def coalesce_window(self) -> Optional[timedelta]:
        if self.coalesce_minutes is None:
            return None
        return timedelta(minutes=self.coalesce_minutes)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _expand_path(path: str) -> str:
    """Expand ~ and environment variables in a path."""
    return os.path.expanduser(os.path.expandvars(path))


def _int_setting(data: dict, key: str, default: int, low: int, high: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        logger.warning("Ignoring invalid %s=%r, using %r", key, value, default)
        return default
    return value


def _str_setting(data: dict, key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        logger.warning("Ignoring invalid %s=%r, using %r", key, value, default)
        return default
    return value


def _validate_timezone(name: str) -> str:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using %s", name, DEFAULT_TIMEZONE)
        return DEFAULT_TIMEZONE
    return name


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML config file. Defaults to
            ~/.config/activity-digest/config.yaml.

    Returns:
        A Config instance. If the config file does not exist, returns a
        default Config (graceful degradation). Invalid values fall back to
        their defaults one key at a time.
    """
    path = _expand_path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not os.path.isfile(path):
        return Config()

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict):
        return Config()

    defaults = Config()

    bots = data.get("bots")
    if bots is None or not isinstance(bots, list):
        bots = list(DEFAULT_BOTS)
    else:
        bots = [b for b in bots if isinstance(b, str)]

    coalesce_minutes = data.get("coalesce_minutes", DEFAULT_COALESCE_MINUTES)
    if coalesce_minutes is not None and (
        isinstance(coalesce_minutes, bool)
        or not isinstance(coalesce_minutes, (int, float))
        or coalesce_minutes < 0
    ):
        logger.warning("Ignoring invalid coalesce_minutes=%r", coalesce_minutes)
        coalesce_minutes = DEFAULT_COALESCE_MINUTES

    future_events = data.get("future_events", "later")
    if future_events not in ("later", "today"):
        logger.warning("Ignoring invalid future_events=%r", future_events)
        future_events = "later"

    return Config(
        bots=bots,
        coalesce_minutes=coalesce_minutes,
        future_events=future_events,
        context_events=_int_setting(data, "context_events", defaults.context_events, 0, 100),
        timezone=_validate_timezone(_str_setting(data, "timezone", defaults.timezone)),
        window_hour=_int_setting(data, "window_hour", defaults.window_hour, 0, 23),
        days=_int_setting(data, "days", defaults.days, 1, 366),
        data_dir=_expand_path(_str_setting(data, "data_dir", defaults.data_dir)),
        reports_dir=_expand_path(_str_setting(data, "reports_dir", defaults.reports_dir)),
        model=_str_setting(data, "model", defaults.model),
        low_effort_model=_str_setting(data, "low_effort_model", defaults.low_effort_model),
    )
