"""Service settings loaded from the environment.

Provides get_settings() returning a frozen Settings snapshot. Values are read
once and cached; tests call reset_settings() after changing the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_MAX_WINDOW_SIZE = 20
DEFAULT_MODEL_TIME_ZONE = "Asia/Kolkata"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_CALENDAR_ID = "primary"


@dataclass(frozen=True)
class CompletionSettings:
    """OpenAI-compatible completion endpoint configuration."""

    api_key: str | None = None
    base_url: str | None = None
    model: str = DEFAULT_OPENAI_MODEL
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class CalendarSettings:
    """Google Calendar configuration.

    Attributes:
        calendar_id: Target calendar ("primary" for the authorized user).
        time_zone: IANA zone attached to event start/end times.
        service_account_file: Service account JSON (takes precedence).
        delegated_user: Subject to impersonate with the service account.
        token_file: Authorized-user token JSON (installed-app flow output).
        timeout_seconds: HTTP timeout for every Calendar API call.
    """

    calendar_id: str = DEFAULT_CALENDAR_ID
    time_zone: str = DEFAULT_MODEL_TIME_ZONE
    service_account_file: str | None = None
    delegated_user: str | None = None
    token_file: str | None = None
    timeout_seconds: float = 15.0


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the context service."""

    app_env: str = "production"
    max_window_size: int = DEFAULT_MAX_WINDOW_SIZE
    model_time_zone: str = DEFAULT_MODEL_TIME_ZONE
    webhook_secret: str | None = None
    admin_token: str | None = None
    participant_whitelist: frozenset[str] = frozenset()
    redact_wide_events: bool = True
    completion: CompletionSettings = field(default_factory=CompletionSettings)
    calendar: CalendarSettings = field(default_factory=CalendarSettings)

    @property
    def is_local(self) -> bool:
        return self.app_env == "local"


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _bool_env(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _zone_env(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        ZoneInfo(raw.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"{name} must be an IANA time zone, got {raw!r}") from exc
    return raw.strip()


def _csv_env(name: str) -> frozenset[str]:
    raw = os.environ.get(name, "")
    return frozenset(item.strip() for item in raw.split(",") if item.strip())


def load_settings() -> Settings:
    """Build Settings from environment variables.

    Raises:
        RuntimeError: If a numeric or time zone variable cannot be parsed.
    """
    model_time_zone = _zone_env("MODEL_TIME_ZONE", DEFAULT_MODEL_TIME_ZONE)

    completion = CompletionSettings(
        api_key=os.environ.get("OPENAI_API_KEY") or None,
        base_url=os.environ.get("OPENAI_BASE_URL") or None,
        model=os.environ.get("OPENAI_MODEL", DEFAULT_OPENAI_MODEL),
        timeout_seconds=_float_env("COMPLETION_TIMEOUT_SECONDS", 30.0),
    )
    calendar = CalendarSettings(
        calendar_id=os.environ.get("GOOGLE_CALENDAR_ID", DEFAULT_CALENDAR_ID),
        time_zone=_zone_env("CALENDAR_TIME_ZONE", model_time_zone),
        service_account_file=os.environ.get("GOOGLE_CALENDAR_SA_FILE") or None,
        delegated_user=os.environ.get("GOOGLE_CALENDAR_USER") or None,
        token_file=os.environ.get("GOOGLE_CALENDAR_TOKEN_FILE") or None,
        timeout_seconds=_float_env("CALENDAR_TIMEOUT_SECONDS", 15.0),
    )

    return Settings(
        app_env=os.environ.get("APP_ENV", "production"),
        max_window_size=_int_env("MAX_WINDOW_SIZE", DEFAULT_MAX_WINDOW_SIZE),
        model_time_zone=model_time_zone,
        webhook_secret=os.environ.get("WHATSAPP_WEBHOOK_SECRET") or None,
        admin_token=os.environ.get("ADMIN_API_TOKEN") or None,
        participant_whitelist=_csv_env("WHATSAPP_PARTICIPANT_WHITELIST"),
        redact_wide_events=_bool_env("REDACT_WIDE_EVENTS", True),
        completion=completion,
        calendar=calendar,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings for this process."""
    return load_settings()


def reset_settings() -> None:
    """Drop the cached Settings (for tests)."""
    get_settings.cache_clear()
