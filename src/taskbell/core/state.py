# src/taskbell/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from .clock import DisplayClock
from .ports import NotificationPlatform

if TYPE_CHECKING:
    from ..notifications.delivery import DeliveryRecorder, DeliveryTracker
    from ..notifications.history import NotificationHistoryStore
    from ..notifications.scheduler import NotificationScheduler
    from ..storage.document_store import JsonDocumentStore
    from ..tasks.status_reconciler import StatusReconciler
    from ..tasks.sweeper import StatusSweeper
    from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Settings object (real Settings or a test SimpleNamespace).
    settings: Any

    clock: DisplayClock
    documents: JsonDocumentStore
    task_store: TaskStore
    history: NotificationHistoryStore
    delivery_tracker: DeliveryTracker
    delivery: DeliveryRecorder
    platform: NotificationPlatform
    notifier: NotificationScheduler
    reconciler: StatusReconciler
    sweeper: StatusSweeper

    # Unsubscribe callables returned by platform.add_listeners().
    listener_cleanups: list[Callable[[], None]] = field(default_factory=list)
