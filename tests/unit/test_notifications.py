"""Tests for email notification delivery."""

import json

import httpx
import pytest

from pledge.services.notifications import (
    EmailNotificationSender,
    NotificationKind,
    close_notification_sender,
    get_notification_sender,
    render_template,
    reset_notification_sender,
)


def make_sender(handler, api_key: str | None = "re_test") -> EmailNotificationSender:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmailNotificationSender(
        api_url="https://mail.test/emails",
        api_key=api_key,
        sender="noreply@pledge.test",
        http_client=client,
    )


class TestTemplates:
    """Tests for render_template."""

    def test_campaign_approved(self):
        """Test the approval email names the campaign and links it."""
        message = render_template(
            NotificationKind.CAMPAIGN_APPROVED,
            {"title": "Clean water", "campaign_id": 4, "campaign_url": "https://x/c/4"},
        )
        assert message.subject == "Your campaign is live: Clean water"
        assert "Campaign ID: 4" in message.text
        assert "https://x/c/4" in message.text

    def test_purchase_receipt(self):
        """Test the receipt lists token ids and the tip."""
        message = render_template(
            "purchase_receipt",
            {"campaign_id": 4, "quantity": 2, "amount_usd": "20", "tip_usd": "5",
             "token_ids": [10, 11]},
        )
        assert message.subject == "Your receipt for Campaign #4"
        assert "Token IDs: #10, #11" in message.text
        assert "Tip: $5" in message.text

    def test_edition_sold(self):
        """Test the creator notice carries the running totals."""
        message = render_template(
            NotificationKind.EDITION_SOLD,
            {"title": "Wells", "quantity": 1, "sold_count": 7, "total_raised": "70.00"},
        )
        assert "Editions sold: 7" in message.text
        assert "Total raised: $70.00" in message.text

    def test_unknown_kind(self):
        """Test an unknown template kind raises."""
        with pytest.raises(ValueError):
            render_template("newsletter", {})


class TestEmailNotificationSender:
    """Tests for EmailNotificationSender."""

    @pytest.mark.asyncio
    async def test_send_posts_message(self):
        """Test a delivered email reports the provider id."""
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"id": "msg_1"})

        sender = make_sender(handler)
        result = await sender.send(
            "buyer@example.com", NotificationKind.PURCHASE_RECEIPT, {"campaign_id": 1}
        )

        assert result.sent is True
        assert result.message_id == "msg_1"
        request = requests[0]
        assert request.headers["Authorization"] == "Bearer re_test"
        body = json.loads(request.content)
        assert body["to"] == ["buyer@example.com"]
        assert body["from"] == "noreply@pledge.test"
        assert body["subject"] == "Your receipt for Campaign #1"
        await sender.close()

    @pytest.mark.asyncio
    async def test_provider_error_is_reported(self):
        """Test a rejected request returns sent=False instead of raising."""
        sender = make_sender(lambda request: httpx.Response(422, json={"error": "bad"}))
        result = await sender.send("a@example.com", NotificationKind.EDITION_SOLD, {})
        assert result.sent is False
        assert "422" in result.error
        await sender.close()

    @pytest.mark.asyncio
    async def test_transport_error_is_reported(self):
        """Test a network failure returns sent=False."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused")

        sender = make_sender(handler)
        result = await sender.send("a@example.com", NotificationKind.EDITION_SOLD, {})
        assert result.sent is False
        assert "connection refused" in result.error
        await sender.close()

    @pytest.mark.asyncio
    async def test_not_configured(self):
        """Test delivery is skipped without an API key."""
        called = []
        sender = make_sender(lambda request: called.append(request), api_key="")
        result = await sender.send("a@example.com", NotificationKind.EDITION_SOLD, {})
        assert result.sent is False
        assert result.error == "not configured"
        assert called == []

    @pytest.mark.asyncio
    async def test_no_recipient(self):
        """Test an empty recipient is reported."""
        sender = make_sender(lambda request: httpx.Response(200, json={}))
        result = await sender.send("", NotificationKind.EDITION_SOLD, {})
        assert result.error == "no recipient"


class TestSenderShutdown:
    """Tests for closing the process-wide sender."""

    @pytest.mark.asyncio
    async def test_close_singleton_client(self):
        """Test shutdown closes the lazily created HTTP client."""
        reset_notification_sender()
        # Nothing created yet
        await close_notification_sender()

        sender = get_notification_sender()
        client = await sender._get_http_client()
        await close_notification_sender()

        assert client.is_closed
        assert sender._http_client is None
        reset_notification_sender()
