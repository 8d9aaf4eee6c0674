"""API v1 module."""

from fastapi import APIRouter

from pledge.api.v1.endpoints import campaigns, purchases, wallets

api_router = APIRouter()

# Include routers
api_router.include_router(campaigns.router)
api_router.include_router(purchases.router)
api_router.include_router(wallets.router)
