"""Cache/chain resync module."""

from pledge.services.resync.schemas import (
    Correction,
    ResyncError,
    ResyncResult,
    ResyncSummary,
)
from pledge.services.resync.service import (
    CampaignResyncService,
    get_resync_service,
    reset_resync_service,
)

__all__ = [
    # Schemas
    "Correction",
    "ResyncResult",
    "ResyncError",
    "ResyncSummary",
    # Service
    "CampaignResyncService",
    "get_resync_service",
    "reset_resync_service",
]
