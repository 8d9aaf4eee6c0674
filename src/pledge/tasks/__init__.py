"""Celery tasks for background processing.

This module provides async task execution for:
- Queued purchase reconciliation
- Cache/chain resync
"""

from pledge.core.celery_app import celery_app

__all__ = ["celery_app"]
