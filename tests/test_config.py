"""Unit tests for activity_digest/config.py.

Run with: python3 -m pytest tests/test_config.py -v
"""

from __future__ import annotations

from datetime import timedelta

from activity_digest.config import DEFAULT_BOTS, DEFAULT_TIMEZONE, Config, load_config


def _write_config(tmp_path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


class TestDefaults:
    def test_missing_file(self, tmp_path):
        cfg = load_config(str(tmp_path / "missing.yaml"))
        assert cfg == Config()
        assert cfg.bots == DEFAULT_BOTS
        assert cfg.coalesce_window == timedelta(minutes=5)
        assert cfg.future_events == "later"
        assert cfg.context_events == 3
        assert cfg.timezone == DEFAULT_TIMEZONE
        assert cfg.window_hour == 8
        assert cfg.days == 7

    def test_empty_file(self, tmp_path):
        assert load_config(_write_config(tmp_path, "")) == Config()

    def test_non_mapping(self, tmp_path):
        assert load_config(_write_config(tmp_path, "- a\n- b\n")) == Config()

    def test_default_bots_not_shared(self):
        Config().bots.append("extra")
        assert "extra" not in Config().bots


class TestLoadConfig:
    """Values read from YAML."""

    def test_all_keys(self, tmp_path):
        path = _write_config(tmp_path, (
            "bots: [renovate]\n"
            "coalesce_minutes: 10\n"
            "future_events: today\n"
            "context_events: 5\n"
            "timezone: Europe/Warsaw\n"
            "window_hour: 6\n"
            "days: 3\n"
            "data_dir: /srv/data\n"
            "reports_dir: /srv/reports\n"
            "model: claude-custom\n"
            "low_effort_model: claude-small\n"
        ))
        cfg = load_config(path)
        assert cfg.bots == ["renovate"]
        assert cfg.coalesce_window == timedelta(minutes=10)
        assert cfg.future_events == "today"
        assert cfg.context_events == 5
        assert cfg.timezone == "Europe/Warsaw"
        assert str(cfg.tz) == "Europe/Warsaw"
        assert cfg.window_hour == 6
        assert cfg.days == 3
        assert cfg.data_dir == "/srv/data"
        assert cfg.reports_dir == "/srv/reports"
        assert cfg.model == "claude-custom"
        assert cfg.low_effort_model == "claude-small"

    def test_null_coalesce_means_adjacency(self, tmp_path):
        cfg = load_config(_write_config(tmp_path, "coalesce_minutes: null\n"))
        assert cfg.coalesce_minutes is None
        assert cfg.coalesce_window is None

    def test_empty_bot_list(self, tmp_path):
        assert load_config(_write_config(tmp_path, "bots: []\n")).bots == []

    def test_non_string_bots_dropped(self, tmp_path):
        assert load_config(_write_config(tmp_path, "bots: [a, 3, b]\n")).bots == ["a", "b"]

    def test_home_expanded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        cfg = load_config(_write_config(tmp_path, "data_dir: ~/issues\n"))
        assert cfg.data_dir == str(tmp_path / "issues")


class TestInvalidValues:
    """Invalid keys fall back to their defaults individually."""

    def test_invalid_future_policy(self, tmp_path):
        cfg = load_config(_write_config(tmp_path, "future_events: soon\ndays: 2\n"))
        assert cfg.future_events == "later"
        assert cfg.days == 2

    def test_negative_coalesce(self, tmp_path):
        cfg = load_config(_write_config(tmp_path, "coalesce_minutes: -1\n"))
        assert cfg.coalesce_window == timedelta(minutes=5)

    def test_out_of_range_hour(self, tmp_path):
        assert load_config(_write_config(tmp_path, "window_hour: 24\n")).window_hour == 8

    def test_boolean_is_not_an_int(self, tmp_path):
        assert load_config(_write_config(tmp_path, "days: true\n")).days == 7

    def test_unknown_timezone(self, tmp_path):
        cfg = load_config(_write_config(tmp_path, "timezone: Mars/Olympus_Mons\n"))
        assert cfg.timezone == DEFAULT_TIMEZONE
