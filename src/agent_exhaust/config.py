"""Environment-supplied settings for every pipeline stage."""

import os
from dataclasses import dataclass, replace
from pathlib import Path

DEFAULT_SESSIONS_DIR = Path.home() / ".openclaw" / "agents" / "main" / "sessions"
DEFAULT_DB_PATH = Path.home() / ".agent-exhaust" / "agent_events.db"
SESSION_INDEX_NAME = "sessions.json"
MAIN_SESSION = "agent:main:main"

# Startup scan only considers lines newer than this.
CATCHUP_WINDOW_HOURS = 6
# Hourly and daily rollups only look this far back.
SYNTHESIS_WINDOW_DAYS = 7
CLASSIFY_BATCH_SIZE = 1000
MIN_HOURLY_EVENTS = 5
MIN_DAILY_HOURS = 4


def _as_int(value, *, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return int(default)


@dataclass(frozen=True)
class Settings:
    sessions_dir: Path = DEFAULT_SESSIONS_DIR
    db_path: Path = DEFAULT_DB_PATH
    session_index_name: str = SESSION_INDEX_NAME
    operator_id: str | None = None
    main_session: str = MAIN_SESSION
    catchup_hours: int = CATCHUP_WINDOW_HOURS
    synthesis_window_days: int = SYNTHESIS_WINDOW_DAYS
    batch_size: int = CLASSIFY_BATCH_SIZE
    min_hourly_events: int = MIN_HOURLY_EVENTS
    min_daily_hours: int = MIN_DAILY_HOURS

    @property
    def session_index_path(self) -> Path:
        return self.sessions_dir / self.session_index_name

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from EXHAUST_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        sessions_dir = env.get("EXHAUST_SESSIONS_DIR")
        db_path = env.get("EXHAUST_DB_PATH")
        return cls(
            sessions_dir=Path(sessions_dir).expanduser() if sessions_dir else DEFAULT_SESSIONS_DIR,
            db_path=Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH,
            session_index_name=env.get("EXHAUST_SESSION_INDEX") or SESSION_INDEX_NAME,
            operator_id=env.get("EXHAUST_OPERATOR_ID") or None,
            main_session=env.get("EXHAUST_MAIN_SESSION") or MAIN_SESSION,
            catchup_hours=_as_int(env.get("EXHAUST_CATCHUP_HOURS"), default=CATCHUP_WINDOW_HOURS),
            synthesis_window_days=_as_int(
                env.get("EXHAUST_SYNTHESIS_WINDOW_DAYS"), default=SYNTHESIS_WINDOW_DAYS),
            batch_size=_as_int(env.get("EXHAUST_BATCH_SIZE"), default=CLASSIFY_BATCH_SIZE),
            min_hourly_events=_as_int(env.get("EXHAUST_MIN_HOURLY_EVENTS"), default=MIN_HOURLY_EVENTS),
            min_daily_hours=_as_int(env.get("EXHAUST_MIN_DAILY_HOURS"), default=MIN_DAILY_HOURS),
        )

    def with_overrides(self, **overrides) -> "Settings":
        """Copy with the non-None overrides applied (CLI options)."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)
