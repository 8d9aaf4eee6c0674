"""Wallet ownership API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from pledge.api.v1.errors import to_http_exception
from pledge.core.exceptions import PledgeError
from pledge.services.ownership import (
    OwnershipAggregator,
    OwnershipResult,
    get_ownership_aggregator,
)

router = APIRouter(prefix="/wallets", tags=["Wallets"])


@router.get("/{address}/tokens", response_model=OwnershipResult)
async def list_owned_tokens(
    address: str,
    service: Annotated[OwnershipAggregator, Depends(get_ownership_aggregator)],
) -> OwnershipResult:
    """List editions held by a wallet across every registered contract."""
    try:
        return await service.list_owned_tokens(address)
    except PledgeError as e:
        raise to_http_exception(e) from e
