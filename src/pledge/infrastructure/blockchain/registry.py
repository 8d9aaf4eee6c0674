"""Static registry of networks and deployed edition contracts.

The registry is built once from settings and never mutated. Every read and
write path resolves its chain client and contract binding through it.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from functools import lru_cache

from web3 import Web3

from pledge.core.config import Settings, get_settings
from pledge.core.exceptions import UnknownChainError
from pledge.infrastructure.blockchain.client import EVMClient

logger = logging.getLogger(__name__)


class ContractVersion(str, Enum):
    """Deployed edition contract generations."""

    V5 = "v5"
    V6 = "v6"
    V7 = "v7"


# Versions exposing isTokenFrozen / isTokenSoulbound
TOKEN_FLAG_VERSIONS = frozenset({ContractVersion.V6, ContractVersion.V7})


@dataclass(frozen=True)
class ChainConfig:
    """Network metadata for one chain id."""

    chain_id: int
    name: str
    rpc_url: str
    native_currency_symbol: str
    is_testnet: bool
    explorer_base_url: str
    backup_rpc_urls: tuple[str, ...] = ()
    native_currency_decimals: int = 18
    usd_per_native: Decimal = Decimal("1")
    confirmations: int = 1
    poa: bool = False

    @property
    def rpc_urls(self) -> list[str]:
        """Primary RPC followed by backups."""
        return [self.rpc_url, *self.backup_rpc_urls]

    def tx_url(self, tx_hash: str) -> str:
        """Explorer link for a transaction."""
        return f"{self.explorer_base_url.rstrip('/')}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        """Explorer link for an account or contract."""
        return f"{self.explorer_base_url.rstrip('/')}/address/{address}"

    def token_url(self, contract_address: str, token_id: int) -> str:
        """Explorer link for a single NFT."""
        return f"{self.explorer_base_url.rstrip('/')}/token/{contract_address}?a={token_id}"


@dataclass(frozen=True)
class ContractBinding:
    """One deployed edition contract on one chain."""

    chain_id: int
    contract_address: str
    contract_version: ContractVersion
    abi_schema: str
    is_active: bool = False
    is_mintable: bool = True

    @property
    def supports_token_flags(self) -> bool:
        return self.contract_version in TOKEN_FLAG_VERSIONS

    def matches(self, chain_id: int, contract_address: str) -> bool:
        return (
            self.chain_id == chain_id
            and self.contract_address.lower() == contract_address.lower()
        )


def abi_name_for(version: ContractVersion) -> str:
    """ABI file stem bundled for a contract version."""
    return f"PledgeEditions{version.value.upper()}"


@dataclass
class ChainRegistry:
    """Immutable chain and contract lookup with cached clients."""

    chains: dict[int, ChainConfig]
    contract_bindings: tuple[ContractBinding, ...]
    default_chain_id: int
    _clients: dict[int, EVMClient] = field(default_factory=dict, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChainRegistry":
        """Build the registry from application settings.

        Args:
            settings: Application settings carrying chains and contracts

        Returns:
            Populated registry
        """
        chains = {
            c.chain_id: ChainConfig(
                chain_id=c.chain_id,
                name=c.name,
                rpc_url=c.rpc_url,
                native_currency_symbol=c.native_currency_symbol,
                is_testnet=c.is_testnet,
                explorer_base_url=c.explorer_url,
                backup_rpc_urls=tuple(c.backup_rpc_urls),
                native_currency_decimals=c.native_currency_decimals,
                usd_per_native=c.usd_per_native,
                confirmations=c.confirmations,
                poa=c.poa,
            )
            for c in settings.chains
        }

        bindings = []
        for contract in settings.contracts:
            if contract.chain_id not in chains:
                raise UnknownChainError(
                    f"Contract {contract.address} references unregistered chain "
                    f"{contract.chain_id}"
                )
            version = ContractVersion(contract.version)
            bindings.append(
                ContractBinding(
                    chain_id=contract.chain_id,
                    contract_address=Web3.to_checksum_address(contract.address),
                    contract_version=version,
                    abi_schema=abi_name_for(version),
                    is_active=contract.is_active,
                    is_mintable=contract.is_mintable,
                )
            )

        logger.info(
            f"Chain registry loaded: {len(chains)} chains, {len(bindings)} contracts"
        )
        return cls(
            chains=chains,
            contract_bindings=tuple(bindings),
            default_chain_id=settings.default_chain_id,
        )

    def get_chain(self, chain_id: int) -> ChainConfig:
        """Get network metadata.

        Raises:
            UnknownChainError: If the chain is not registered
        """
        chain = self.chains.get(chain_id)
        if chain is None:
            raise UnknownChainError(f"Chain {chain_id} is not registered")
        return chain

    def bindings(self) -> list[ContractBinding]:
        return list(self.contract_bindings)

    def mintable_bindings(self) -> list[ContractBinding]:
        """Bindings scanned by the ownership read path."""
        return [b for b in self.contract_bindings if b.is_mintable]

    def active_binding(self, chain_id: int | None = None) -> ContractBinding:
        """Binding that new campaigns are created on.

        Args:
            chain_id: Restrict to one chain (default chain when None)

        Raises:
            UnknownChainError: If no active binding exists for the chain
        """
        target = chain_id if chain_id is not None else self.default_chain_id
        self.get_chain(target)
        for binding in self.contract_bindings:
            if binding.chain_id == target and binding.is_active:
                return binding
        raise UnknownChainError(f"No active contract registered on chain {target}")

    def binding_for(self, chain_id: int, contract_address: str) -> ContractBinding:
        """Find a binding by chain and address (case-insensitive).

        Raises:
            UnknownChainError: If the pair is not registered
        """
        for binding in self.contract_bindings:
            if binding.matches(chain_id, contract_address):
                return binding
        raise UnknownChainError(
            f"Contract {contract_address} is not registered on chain {chain_id}"
        )

    def client_for(self, chain_id: int) -> EVMClient:
        """Get the cached RPC client for a chain."""
        client = self._clients.get(chain_id)
        if client is None:
            chain = self.get_chain(chain_id)
            client = EVMClient(
                rpc_urls=chain.rpc_urls,
                chain_id=chain.chain_id,
                poa=chain.poa,
            )
            self._clients[chain_id] = client
        return client


@lru_cache(maxsize=1)
def get_chain_registry() -> ChainRegistry:
    """Get the process-wide registry."""
    return ChainRegistry.from_settings(get_settings())
