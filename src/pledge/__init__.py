"""Pledge Editions backend: campaign provisioning, edition minting and cache reconciliation."""

__version__ = "0.1.0"
