# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskbell.cli.bootstrap import create_initial_state
from taskbell.core.state import AppState

from .fakes import FakeNow, FakePlatform, manila


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_initial_state().

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="taskbell-test",
        log_level="DEBUG",
        console_enabled=False,
        notifications_enabled=True,
        data_dir=tmp_path / "data",
        display_timezone="Asia/Manila",
        grace_minutes=15,
        lead_minutes=15,
        dedup_window_minutes=5,
        sweep_interval_seconds=60.0,
        reset_past_slot=False,
    )


@pytest.fixture()
def now() -> FakeNow:
    # Monday 2026-10-19, 08:00 in Manila.
    return FakeNow(manila(19, 8, 0))


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def state(settings: SimpleNamespace, platform: FakePlatform, now: FakeNow) -> AppState:
    """
    AppState wired with a fake notification platform and a settable clock.

    The JSON document store is real: persistence is part of what we want to test.
    """
    return create_initial_state(settings=settings, platform=platform, now_fn=now)
