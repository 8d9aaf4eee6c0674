"""Signing keys, one independent context per writer role."""

import asyncio
import logging
from enum import Enum

from eth_account import Account
from eth_account.signers.local import LocalAccount

from pledge.core.config import get_settings

logger = logging.getLogger(__name__)


class SignerRole(str, Enum):
    """Writer roles that submit transactions."""

    RELAYER = "relayer"  # creates campaigns
    PURCHASER = "purchaser"  # mints editions


class SignerContext:
    """Account plus the lock that serializes its nonce sequence."""

    def __init__(self, role: SignerRole, private_key: str):
        key = private_key if private_key.startswith("0x") else f"0x{private_key}"
        self.role = role
        self.account: LocalAccount = Account.from_key(key)
        self.nonce_lock = asyncio.Lock()

    @property
    def address(self) -> str:
        """Get the signer address."""
        return self.account.address

    def __repr__(self) -> str:
        return f"SignerContext(role={self.role.value}, address={self.address})"


_signers: dict[SignerRole, SignerContext] = {}


def get_signer(role: SignerRole) -> SignerContext:
    """Get or create the signer for a role.

    Args:
        role: Writer role

    Returns:
        Signer context bound to the role's key

    Raises:
        ValueError: If no key is configured for the role
    """
    signer = _signers.get(role)
    if signer is None:
        settings = get_settings()
        key = {
            SignerRole.RELAYER: settings.relayer_private_key,
            SignerRole.PURCHASER: settings.purchaser_private_key,
        }[role]
        if not key:
            raise ValueError(
                f"No private key configured for {role.value} signer. "
                f"Set {role.value.upper()}_PRIVATE_KEY"
            )
        signer = SignerContext(role, key)
        _signers[role] = signer
        logger.info(f"Signer initialized: {signer!r}")
    return signer


def reset_signers() -> None:
    """Drop cached signers (for testing)."""
    _signers.clear()
