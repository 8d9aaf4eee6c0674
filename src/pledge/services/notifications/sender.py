"""Email notification delivery over an HTTP email API."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from pledge.core.config import get_settings
from pledge.services.notifications.schemas import NotificationKind, NotificationResult
from pledge.services.notifications.templates import render_template

logger = logging.getLogger(__name__)


class NotificationSender(ABC):
    """Best-effort message delivery. Implementations never raise."""

    @abstractmethod
    async def send(
        self,
        recipient: str,
        template_kind: NotificationKind | str,
        data: dict[str, Any],
    ) -> NotificationResult:
        ...

    async def close(self) -> None:
        """Release transport resources."""


class EmailNotificationSender(NotificationSender):
    """Sends templated emails through a Resend-compatible HTTP API."""

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        sender: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        """Initialize email sender.

        Args:
            api_url: Email API endpoint
            api_key: Bearer key for the API; delivery is disabled without it
            sender: From address
            http_client: Shared HTTP client (created lazily if not provided)
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.api_url = api_url or settings.email_api_url
        self.api_key = api_key if api_key is not None else settings.email_api_key
        self.sender = sender or settings.email_from
        self._http_client = http_client
        self._timeout = timeout

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def send(
        self,
        recipient: str,
        template_kind: NotificationKind | str,
        data: dict[str, Any],
    ) -> NotificationResult:
        """Render and send one email.

        Args:
            recipient: Destination address
            template_kind: Template to render
            data: Template variables

        Returns:
            NotificationResult; failures are reported, not raised
        """
        if not self.api_key:
            logger.info(f"Email not configured, skipping {template_kind} to {recipient}")
            return NotificationResult(sent=False, error="not configured")
        if not recipient:
            return NotificationResult(sent=False, error="no recipient")

        try:
            message = render_template(template_kind, data)
            client = await self._get_http_client()
            response = await client.post(
                self.api_url,
                json={
                    "from": self.sender,
                    "to": [recipient],
                    "subject": message.subject,
                    "text": message.text,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            body = response.json() if response.content else {}
        except Exception as e:
            logger.warning(f"Failed to send {template_kind} email to {recipient}: {e}")
            return NotificationResult(sent=False, error=str(e))

        logger.info(f"Sent {template_kind} email to {recipient}")
        return NotificationResult(sent=True, message_id=body.get("id"))

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None


# Singleton instance
_notification_sender: NotificationSender | None = None


def get_notification_sender() -> NotificationSender:
    """Get or create notification sender singleton."""
    global _notification_sender
    if _notification_sender is None:
        _notification_sender = EmailNotificationSender()
    return _notification_sender


def reset_notification_sender() -> None:
    """Reset notification sender singleton (for testing)."""
    global _notification_sender
    _notification_sender = None


async def close_notification_sender() -> None:
    """Close the singleton's HTTP client if the sender was ever created."""
    if _notification_sender is not None:
        await _notification_sender.close()
