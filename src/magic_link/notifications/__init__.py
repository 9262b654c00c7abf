"""Notifications — tell recipients that a claim link is waiting."""

from __future__ import annotations

from magic_link.notifications.events import ClaimNotificationEvent
from magic_link.notifications.notifier import (
    LogNotifier,
    Notifier,
    WebhookNotifier,
    create_notifier,
)

__all__ = [
    "ClaimNotificationEvent",
    "LogNotifier",
    "Notifier",
    "WebhookNotifier",
    "create_notifier",
]
