"""Notification sub-package — user-visible toast delivery."""

from emotion_monitor.notifications.handlers import (
    MemoryHandler,
    NotificationDispatcher,
    NotificationHandler,
    create_dispatcher,
)

__all__ = ["MemoryHandler", "NotificationDispatcher", "NotificationHandler", "create_dispatcher"]
