"""Tests for environment-driven settings."""

from pathlib import Path

from agent_exhaust.config import (
    CATCHUP_WINDOW_HOURS, DEFAULT_DB_PATH, DEFAULT_SESSIONS_DIR, Settings,
)


class TestFromEnv:

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.sessions_dir == DEFAULT_SESSIONS_DIR
        assert settings.db_path == DEFAULT_DB_PATH
        assert settings.operator_id is None
        assert settings.main_session == "agent:main:main"
        assert settings.catchup_hours == CATCHUP_WINDOW_HOURS
        assert settings.session_index_path == DEFAULT_SESSIONS_DIR / "sessions.json"

    def test_overrides_from_env(self, tmp_path):
        settings = Settings.from_env({
            "EXHAUST_SESSIONS_DIR": str(tmp_path / "s"),
            "EXHAUST_DB_PATH": str(tmp_path / "e.db"),
            "EXHAUST_OPERATOR_ID": "42",
            "EXHAUST_MIN_HOURLY_EVENTS": "3",
            "EXHAUST_BATCH_SIZE": "250",
        })
        assert settings.sessions_dir == tmp_path / "s"
        assert settings.db_path == tmp_path / "e.db"
        assert settings.operator_id == "42"
        assert settings.min_hourly_events == 3
        assert settings.batch_size == 250

    def test_bad_integers_fall_back(self):
        settings = Settings.from_env({
            "EXHAUST_CATCHUP_HOURS": "six",
            "EXHAUST_MIN_DAILY_HOURS": "",
        })
        assert settings.catchup_hours == CATCHUP_WINDOW_HOURS
        assert settings.min_daily_hours == 4

    def test_empty_operator_disables_rule(self):
        assert Settings.from_env({"EXHAUST_OPERATOR_ID": ""}).operator_id is None


class TestWithOverrides:

    def test_none_values_ignored(self):
        base = Settings(db_path=Path("/tmp/a.db"))
        assert base.with_overrides(db_path=None, sessions_dir=None) == base

    def test_values_applied(self):
        base = Settings()
        updated = base.with_overrides(db_path=Path("/tmp/b.db"))
        assert updated.db_path == Path("/tmp/b.db")
        assert base.db_path == DEFAULT_DB_PATH
