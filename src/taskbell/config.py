# src/taskbell/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Timing constants (grace / lead / dedup window) live here, not in the modules using them.
- The display timezone is set once at startup and shared by every comparison.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKBELL"

DEFAULT_TIMEZONE = "Asia/Manila"
DEFAULT_GRACE_MINUTES = 15
DEFAULT_LEAD_MINUTES = 15
DEFAULT_DEDUP_WINDOW_MINUTES = 5


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    notifications_enabled: bool

    # ---- Local data (ignored by git) ----
    data_dir: Path

    # ---- Time handling ----
    display_timezone: str
    grace_minutes: int
    lead_minutes: int
    dedup_window_minutes: int
    sweep_interval_seconds: float

    # Product decision: revive a COMPLETE task whose slot already passed today.
    reset_past_slot: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskbell").strip() or "taskbell"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        notifications_enabled = _env_bool(_k("NOTIFICATIONS_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskbell"))

        display_timezone = _env(_k("DISPLAY_TIMEZONE"), DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
        grace_minutes = _env_int(_k("GRACE_MINUTES"), DEFAULT_GRACE_MINUTES, minimum=0)
        lead_minutes = _env_int(_k("LEAD_MINUTES"), DEFAULT_LEAD_MINUTES, minimum=0)
        dedup_window_minutes = _env_int(
            _k("DEDUP_WINDOW_MINUTES"), DEFAULT_DEDUP_WINDOW_MINUTES, minimum=0
        )
        sweep_interval_seconds = max(1.0, _env_float(_k("SWEEP_INTERVAL_SECONDS"), 60.0))

        reset_past_slot = _env_bool(_k("RESET_PAST_SLOT"), False)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            notifications_enabled=notifications_enabled,
            data_dir=data_dir,
            display_timezone=display_timezone,
            grace_minutes=grace_minutes,
            lead_minutes=lead_minutes,
            dedup_window_minutes=dedup_window_minutes,
            sweep_interval_seconds=sweep_interval_seconds,
            reset_past_slot=reset_past_slot,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
