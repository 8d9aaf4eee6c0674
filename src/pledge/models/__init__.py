"""Database models for the Pledge backend."""

from pledge.models.base import Base, TimestampMixin
from pledge.models.purchase import PurchaseEvent, PurchaseRecord
from pledge.models.submission import Submission
from pledge.models.token import TokenRecord

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Cache models
    "Submission",
    "PurchaseRecord",
    "TokenRecord",
    # Event log
    "PurchaseEvent",
]
