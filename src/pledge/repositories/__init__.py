"""Repository layer for database operations.

This module provides async repository implementations using SQLAlchemy 2.x.
All repositories follow the Repository pattern with consistent CRUD operations.
"""

from pledge.repositories.base import BaseRepository
from pledge.repositories.purchase import PurchaseEventRepository, PurchaseRepository
from pledge.repositories.submission import SubmissionRepository
from pledge.repositories.token import TokenRepository

__all__ = [
    "BaseRepository",
    "SubmissionRepository",
    "PurchaseRepository",
    "PurchaseEventRepository",
    "TokenRepository",
]
