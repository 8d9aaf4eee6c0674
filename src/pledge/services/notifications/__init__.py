"""Notification delivery module."""

from pledge.services.notifications.schemas import (
    NotificationKind,
    NotificationResult,
    RenderedMessage,
)
from pledge.services.notifications.sender import (
    EmailNotificationSender,
    close_notification_sender,
    NotificationSender,
    get_notification_sender,
    reset_notification_sender,
)
from pledge.services.notifications.templates import render_template

__all__ = [
    # Schemas
    "NotificationKind",
    "NotificationResult",
    "RenderedMessage",
    # Senders
    "NotificationSender",
    "EmailNotificationSender",
    "close_notification_sender",
    "get_notification_sender",
    "reset_notification_sender",
    "render_template",
]
