# src/taskbell/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- configures the process-wide display clock,
- wires stores, scheduler, reconciler and sweeper into AppState,
- subscribes the delivery recorder to the notification platform.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import configure_clock
from ..core.ports import NotificationListener, NotificationPlatform
from ..core.state import AppState
from ..notifications.delivery import DeliveryRecorder, DeliveryTracker
from ..notifications.history import NotificationHistoryStore
from ..notifications.platform import SchedulerPlatform
from ..notifications.registry import ScheduleRegistry
from ..notifications.scheduler import NotificationScheduler
from ..storage.document_store import JsonDocumentStore
from ..tasks.status_reconciler import StatusReconciler
from ..tasks.sweeper import StatusSweeper
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def create_initial_state(
    *,
    settings=None,
    platform: NotificationPlatform | None = None,
    now_fn=None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings/platform injectable makes the app easier to test and avoids hidden
    global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    settings.data_dir.mkdir(parents=True, exist_ok=True)

    clock = configure_clock(settings.display_timezone, now_fn=now_fn)
    documents = JsonDocumentStore(settings.data_dir)

    if platform is None:
        platform = SchedulerPlatform(
            timezone=settings.display_timezone,
            notifications_enabled=settings.notifications_enabled,
        )

    task_store = TaskStore(documents, clock)
    history = NotificationHistoryStore(documents)
    tracker = DeliveryTracker(documents)
    recorder = DeliveryRecorder(
        tracker,
        history,
        clock,
        dedup_window_minutes=settings.dedup_window_minutes,
    )
    notifier = NotificationScheduler(
        platform,
        ScheduleRegistry(),
        tracker,
        clock,
        lead_minutes=settings.lead_minutes,
        # Same constant as the reconciler: the overdue alert and the OVERDUE status line up.
        grace_minutes=settings.grace_minutes,
    )
    reconciler = StatusReconciler(
        task_store,
        clock,
        grace_minutes=settings.grace_minutes,
        reset_past_slot=settings.reset_past_slot,
    )
    sweeper = StatusSweeper(task_store, reconciler, notifier, tracker, clock)

    state = AppState(
        settings=settings,
        clock=clock,
        documents=documents,
        task_store=task_store,
        history=history,
        delivery_tracker=tracker,
        delivery=recorder,
        platform=platform,
        notifier=notifier,
        reconciler=reconciler,
        sweeper=sweeper,
    )
    state.listener_cleanups.append(
        platform.add_listeners(recorder.record_delivery, recorder.record_response)
    )
    logger.info(
        "State ready data_dir=%s tz=%s grace=%dm lead=%dm",
        settings.data_dir,
        clock.timezone_name,
        settings.grace_minutes,
        settings.lead_minutes,
    )
    return state


def add_delivery_listener(state: AppState, listener: NotificationListener) -> None:
    """Extra "received" listener (e.g. the console printing alerts as they fire)."""
    state.listener_cleanups.append(state.platform.add_listeners(listener))


def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    for cleanup in state.listener_cleanups:
        try:
            cleanup()
        except Exception:
            logger.debug("Listener cleanup failed.", exc_info=True)
    state.listener_cleanups.clear()

    stop = getattr(state.platform, "shutdown", None)
    if callable(stop):
        try:
            stop()
        except Exception:
            logger.debug("Platform shutdown failed.", exc_info=True)
