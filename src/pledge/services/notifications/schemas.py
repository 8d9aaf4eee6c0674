"""Notification schemas."""

from enum import Enum

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    """Email templates the core sends."""

    CAMPAIGN_APPROVED = "campaign_approved"
    PURCHASE_RECEIPT = "purchase_receipt"
    EDITION_SOLD = "edition_sold"


class NotificationResult(BaseModel):
    """Delivery outcome; failures are data, never exceptions."""

    sent: bool = Field(..., description="Whether the provider accepted the message")
    error: str | None = Field(None, description="Failure reason")
    message_id: str | None = Field(None, description="Provider message id")


class RenderedMessage(BaseModel):
    """Subject and plain-text body for one email."""

    subject: str
    text: str
