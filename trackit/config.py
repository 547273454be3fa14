import logging
import os
from dataclasses import dataclass
from typing import Optional

from .remote import HttpRemoteStore, PostgresRemoteStore, RemoteStore

DEFAULT_HOME = "~/.trackit"
DEFAULT_PROFILE = "default"


@dataclass
class Settings:
    home: str = DEFAULT_HOME
    profile: str = DEFAULT_PROFILE
    api_url: Optional[str] = None
    token: Optional[str] = None
    user_id: Optional[str] = None
    db_url: Optional[str] = None
    log_level: str = "WARNING"
    http_timeout: Optional[float] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.WARNING


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    return value.strip() if value and value.strip() else None


def _float_env(name: str) -> Optional[float]:
    value = _env(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def load_settings() -> Settings:
    return Settings(
        home=_env("TRACKIT_HOME") or DEFAULT_HOME,
        profile=_env("TRACKIT_PROFILE") or DEFAULT_PROFILE,
        api_url=_env("TRACKIT_API_URL"),
        token=_env("TRACKIT_TOKEN"),
        user_id=_env("TRACKIT_USER_ID"),
        db_url=_env("DATABASE_URL") or _env("TRACKIT_DB_URL"),
        log_level=_env("TRACKIT_LOG_LEVEL") or "WARNING",
        http_timeout=_float_env("TRACKIT_HTTP_TIMEOUT"),
    )


def build_remote(settings: Settings) -> Optional[RemoteStore]:
    if settings.api_url and settings.is_authenticated:
        return HttpRemoteStore(settings.api_url, settings.token, timeout=settings.http_timeout)
    if settings.db_url:
        return PostgresRemoteStore(settings.db_url, settings.profile)
    return None
