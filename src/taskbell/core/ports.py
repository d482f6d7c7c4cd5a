# src/taskbell/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
The host's local-notification subsystem is the main one: the core only asks it to
register weekly triggers, cancel them, list what is pending, and tell us when an alert
was delivered or answered.
"""

from typing import Any, Awaitable, Callable, Protocol

from ..notifications.models import AlertPayload, PendingNotification, WeeklyTrigger

NotificationListener = Callable[[dict[str, Any]], Awaitable[None]]
# Receives the payload dict attached at scheduling time (AlertPayload.to_dict()).


class NotificationPlatform(Protocol):
    """Host local-notification scheduler."""

    async def permissions_granted(self) -> bool: ...

    async def request_permissions(self) -> bool: ...

    async def schedule_weekly_notification(
            self,
            trigger: WeeklyTrigger,
            payload: AlertPayload,
    ) -> str:
        """Register a recurring weekly alert and return its platform handle."""
        ...

    async def cancel_notification(self, handle: str) -> None: ...

    async def list_pending_notifications(self) -> list[PendingNotification]: ...

    def add_listeners(
            self,
            on_received: NotificationListener,
            on_response: NotificationListener | None = None,
    ) -> Callable[[], None]:
        """Subscribe to delivery/response events. Returns an unsubscribe callable."""
        ...

    async def respond(self, payload: dict[str, Any]) -> None:
        """Report that the user acted on a delivered alert."""
        ...
