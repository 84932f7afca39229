"""Settings loaded from environment variables (+ optional .env).

One ``Settings`` object is built at startup and handed to ``create_app``;
nothing reads the environment after that.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import time, timezone, tzinfo
from typing import List, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./local.db"

# Named aliases for the default due time used when an entry has a date but no time
DUE_TIME_ALIASES = {
    "noon": time(12, 0),
    "end-of-day": time(23, 59),
    "eod": time(23, 59),
}

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [o.strip() for o in raw.split(",") if o.strip()]


def parse_due_time(raw: Optional[str], default: time = time(23, 59)) -> time:
    """Accept ``HH:MM`` or one of ``DUE_TIME_ALIASES``; anything else falls back to ``default``."""
    if not raw:
        return default
    raw = raw.strip().lower()
    if raw in DUE_TIME_ALIASES:
        return DUE_TIME_ALIASES[raw]
    try:
        return time.fromisoformat(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 500
    openai_timeout_seconds: float = 30.0
    default_due_time: time = time(23, 59)
    timezone_name: str = "UTC"
    cors_allow_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"

    @property
    def tz(self) -> tzinfo:
        if self.timezone_name.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone_name)


def get_settings() -> Settings:
    if _env("APP_LOAD_DOTENV").strip().lower() in _TRUTHY:  # pragma: no cover
        # Respect existing env (override=False). Default search walks up from CWD.
        load_dotenv(override=False)
    return Settings(
        database_url=_env("DATABASE_URL", DEFAULT_DATABASE_URL),
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        openai_model=_env("OPENAI_MODEL", "gpt-3.5-turbo"),
        openai_temperature=_env_float("OPENAI_TEMPERATURE", 0.7),
        openai_max_tokens=_env_int("OPENAI_MAX_TOKENS", 500),
        openai_timeout_seconds=_env_float("OPENAI_TIMEOUT_SECONDS", 30.0),
        default_due_time=parse_due_time(os.getenv("DEFAULT_DUE_TIME")),
        timezone_name=_env("APP_TIMEZONE", "UTC"),
        cors_allow_origins=_env_list("CORS_ALLOW_ORIGINS", ["http://localhost:3000"]),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )
