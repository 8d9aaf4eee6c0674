"""Campaign provisioning and resync API endpoints (admin only)."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from pledge.api.v1.errors import to_http_exception
from pledge.core.exceptions import PledgeError
from pledge.services.auth import AdminIdentity
from pledge.services.provisioning import (
    CampaignProvisioner,
    ProvisionResult,
    get_campaign_provisioner,
)
from pledge.services.resync import (
    CampaignResyncService,
    ResyncResult,
    get_resync_service,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


@router.post("/{submission_id}/provision", response_model=ProvisionResult)
async def provision_campaign(
    submission_id: int,
    admin: AdminIdentity,
    service: Annotated[CampaignProvisioner, Depends(get_campaign_provisioner)],
) -> ProvisionResult:
    """Create the on-chain campaign for an approved submission.

    Repeating the call returns the original result.

    Requires: admin role
    """
    logger.info(f"Provision requested for submission {submission_id} by {admin.user_id}")
    try:
        return await service.provision(submission_id)
    except PledgeError as e:
        raise to_http_exception(e) from e


@router.post("/{submission_id}/resync", response_model=ResyncResult)
async def resync_campaign(
    submission_id: int,
    admin: AdminIdentity,
    service: Annotated[CampaignResyncService, Depends(get_resync_service)],
    apply: bool = Query(False, description="Write on-chain values into the cache"),
) -> ResyncResult:
    """Diff the cached campaign against the chain.

    Requires: admin role
    """
    try:
        return await service.resync_campaign(submission_id, apply=apply)
    except PledgeError as e:
        raise to_http_exception(e) from e
