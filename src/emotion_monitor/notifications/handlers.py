"""Notification handlers — user-visible toast delivery.

Architecture
~~~~~~~~~~~~
* **NotificationHandler** — abstract base for delivery channels.
* **LogHandler / MemoryHandler / WebhookHandler** — concrete channels.
* **NotificationDispatcher** — fan-out with error-isolation and results.
* **create_dispatcher()** — factory that wires handlers from settings.

Adding a new channel
~~~~~~~~~~~~~~~~~~~~
1. Subclass ``NotificationHandler``.
2. Implement ``async send(notification) -> bool``.
3. Optionally set ``min_level`` to ignore chatty messages.
4. Register via ``dispatcher.add_handler(...)`` or add to the factory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import structlog

from emotion_monitor.models import Notification, NotificationLevel

if TYPE_CHECKING:
    from emotion_monitor.config import Settings

logger = structlog.get_logger(__name__)

_LEVEL_ORDER = {
    NotificationLevel.INFO: 0,
    NotificationLevel.SUCCESS: 1,
    NotificationLevel.WARNING: 2,
    NotificationLevel.ERROR: 3,
}


# ── Dispatch result ───────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """Outcome summary for a single ``dispatch()`` call."""

    notification_id: str
    sent: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def all_ok(self) -> bool:
        return not self.failed


# ── Abstract handler ──────────────────────────────────────────


class NotificationHandler(ABC):
    """Contract for notification delivery channels."""

    name: str = "base"
    min_level: NotificationLevel = NotificationLevel.INFO

    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """Deliver a notification.  Return ``True`` on success."""

    def should_handle(self, notification: Notification) -> bool:
        return _LEVEL_ORDER[notification.level] >= _LEVEL_ORDER[self.min_level]


# ── Concrete handlers ────────────────────────────────────────


class LogHandler(NotificationHandler):
    """Write notifications to the structured log (always enabled)."""

    name = "log"

    async def send(self, notification: Notification) -> bool:
        log = logger.warning if notification.level is NotificationLevel.ERROR else logger.info
        log(
            "notification.toast",
            level=notification.level.value,
            message=notification.message,
        )
        return True


class MemoryHandler(NotificationHandler):
    """Keep the most recent notifications for a UI to poll."""

    name = "memory"

    def __init__(self, maxlen: int = 50) -> None:
        self._items: deque[Notification] = deque(maxlen=maxlen)

    async def send(self, notification: Notification) -> bool:
        self._items.append(notification)
        return True

    def recent(self, limit: int | None = None) -> list[Notification]:
        items = list(self._items)
        return items[-limit:] if limit else items

    def clear(self) -> None:
        self._items.clear()


class WebhookHandler(NotificationHandler):
    """POST notification JSON to an external webhook URL."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        min_level: NotificationLevel = NotificationLevel.WARNING,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self.min_level = min_level

    async def send(self, notification: Notification) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json=notification.model_dump(mode="json"))
                resp.raise_for_status()
            logger.debug("notification.webhook_sent", url=self._url, id=notification.id)
            return True
        except httpx.HTTPError as exc:
            logger.error("notification.webhook_failed", url=self._url, error=str(exc))
            return False


# ── Dispatcher ────────────────────────────────────────────────


class NotificationDispatcher:
    """Fan-out notifications to registered handlers with error isolation.

    Each handler is invoked independently — a failure in one channel
    never blocks delivery to the others.
    """

    def __init__(self, *, handlers: list[NotificationHandler] | None = None) -> None:
        self._handlers: list[NotificationHandler] = handlers or [LogHandler()]

    def add_handler(self, handler: NotificationHandler) -> None:
        self._handlers.append(handler)

    def get_handler(self, name: str) -> NotificationHandler | None:
        return next((h for h in self._handlers if h.name == name), None)

    @property
    def handler_names(self) -> list[str]:
        return [h.name for h in self._handlers]

    async def dispatch(self, notification: Notification) -> DispatchResult:
        """Send *notification* to every interested handler.

        A handler that raises is caught, logged, and marked as failed so
        remaining handlers still execute.
        """
        sent: list[str] = []
        failed: list[str] = []

        for handler in self._handlers:
            if not handler.should_handle(notification):
                continue
            try:
                ok = await handler.send(notification)
                (sent if ok else failed).append(handler.name)
            except Exception:
                logger.exception(
                    "notification.handler_error",
                    handler=handler.name,
                    id=notification.id,
                )
                failed.append(handler.name)

        return DispatchResult(notification_id=notification.id, sent=sent, failed=failed)

    async def notify(self, level: NotificationLevel, message: str) -> DispatchResult:
        """Build and dispatch a notification in one call."""
        return await self.dispatch(Notification(level=level, message=message))


# ── Factory ───────────────────────────────────────────────────


def create_dispatcher(settings: Settings) -> NotificationDispatcher:
    """Build a :class:`NotificationDispatcher` wired from application settings.

    * **LogHandler** and **MemoryHandler** are always registered.
    * **WebhookHandler** is added when ``settings.webhook_url`` is non-empty.
    """
    dispatcher = NotificationDispatcher(
        handlers=[LogHandler(), MemoryHandler(settings.notification_buffer_size)],
    )
    if settings.webhook_url:
        dispatcher.add_handler(
            WebhookHandler(settings.webhook_url, timeout=settings.webhook_timeout_seconds),
        )
    return dispatcher
