import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        timezone: str,
        session_secret: str,
        session_max_age_hours: int,
        goal_warning_percent: int,
        goal_over_percent: int,
        avatar_max_bytes: int,
    ) -> None:
        self.database_url = database_url
        self.timezone = timezone
        self.session_secret = session_secret
        self.session_max_age_hours = session_max_age_hours
        self.goal_warning_percent = goal_warning_percent
        self.goal_over_percent = goal_over_percent
        self.avatar_max_bytes = avatar_max_bytes

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_max_age_hours * 3600


def _data_dir() -> Path:
    root = Path(os.getenv("FINANCE_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    database_url = os.getenv("FINANCE_DATABASE_URL")
    if not database_url:
        database_url = f"sqlite:///{_data_dir() / 'finance.db'}"
    return Settings(
        database_url=database_url,
        timezone=os.getenv("FINANCE_TIMEZONE", "UTC"),
        session_secret=os.getenv(
            "FINANCE_SESSION_SECRET",
            "5b0f3c1e8a9d4e27b6f1c0a3d8e2f7a94c6b1d0e3f5a7c9e2b4d6f8a0c1e3b5d",
        ),
        session_max_age_hours=_env_int("FINANCE_SESSION_MAX_AGE_HOURS", 720),
        goal_warning_percent=_env_int("FINANCE_GOAL_WARNING_PERCENT", 80),
        goal_over_percent=_env_int("FINANCE_GOAL_OVER_PERCENT", 100),
        avatar_max_bytes=_env_int("FINANCE_AVATAR_MAX_BYTES", 2 * 1024 * 1024),
    )
