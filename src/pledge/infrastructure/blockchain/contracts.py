"""Contract management and ABI handling.

Loads the bundled edition-contract ABIs and provides typed read helpers that
go through the versioned layouts.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from eth_abi import decode
from web3 import Web3
from web3.types import TxParams

from pledge.core.exceptions import FatalChainError
from pledge.infrastructure.blockchain.client import ChainClient
from pledge.infrastructure.blockchain.layouts import (
    CampaignSnapshot,
    EditionInfo,
    get_layout,
)
from pledge.infrastructure.blockchain.registry import ContractBinding

logger = logging.getLogger(__name__)

# Bundled ABI directory (shipped as package data)
ABI_DIR = Path(__file__).parent / "abi"


class ABILoader:
    """Loads and caches contract ABIs from JSON files."""

    def __init__(self, abi_dir: Path = ABI_DIR):
        self._abis: dict[str, list[dict]] = {}
        self._load_all_abis(abi_dir)

    def _load_all_abis(self, abi_dir: Path) -> None:
        """Load all ABIs from the ABI directory."""
        if not abi_dir.exists():
            logger.warning(f"ABI directory not found: {abi_dir}")
            return

        for abi_file in sorted(abi_dir.glob("*.json")):
            with open(abi_file, "r") as f:
                data = json.load(f)
            abi = data.get("abi", [])
            if abi:
                self._abis[abi_file.stem] = abi
                logger.debug(f"Loaded ABI: {abi_file.stem} ({len(abi)} entries)")

        logger.info(f"Loaded {len(self._abis)} ABIs: {list(self._abis.keys())}")

    def get_abi(self, contract_name: str) -> list[dict]:
        """Get ABI by contract name.

        Args:
            contract_name: ABI file stem (e.g., "PledgeEditionsV6")

        Returns:
            Contract ABI as list of dicts
        """
        if contract_name not in self._abis:
            raise ValueError(f"ABI not found for contract: {contract_name}")
        return self._abis[contract_name]

    @property
    def names(self) -> list[str]:
        return list(self._abis)


@lru_cache(maxsize=1)
def get_abi_loader() -> ABILoader:
    """Get the singleton ABI loader instance."""
    return ABILoader()


class ContractManager:
    """Read access to edition contracts on one chain."""

    def __init__(self, client: ChainClient, abi_loader: ABILoader | None = None):
        """Initialize contract manager.

        Args:
            client: Blockchain client for RPC calls
            abi_loader: ABI source (bundled ABIs by default)
        """
        self.client = client
        self.w3 = Web3()  # For encoding/decoding only
        self.abi_loader = abi_loader or get_abi_loader()

    def encode_function_call(
        self, abi: list[dict], function_name: str, args: list[Any] | None = None
    ) -> bytes:
        """Encode function call data.

        Args:
            abi: Contract ABI
            function_name: Name of the function to call
            args: Function arguments

        Returns:
            Encoded function call data
        """
        dummy_address = "0x0000000000000000000000000000000000000000"
        contract = self.w3.eth.contract(address=dummy_address, abi=abi)
        func = contract.get_function_by_name(function_name)
        return func(*args if args else [])._encode_transaction_data()

    def decode_function_result(
        self, abi: list[dict], function_name: str, data: bytes
    ) -> Any:
        """Decode function result.

        Args:
            abi: Contract ABI
            function_name: Name of the function
            data: Raw result data

        Returns:
            Decoded result; a tuple when the function has several outputs
        """
        func_abi = None
        for item in abi:
            if item.get("type") == "function" and item.get("name") == function_name:
                func_abi = item
                break

        if not func_abi:
            raise ValueError(f"Function {function_name} not found in ABI")

        output_types = []
        for o in func_abi.get("outputs", []):
            if o["type"] == "tuple":
                components = o.get("components", [])
                component_types = ",".join(c["type"] for c in components)
                output_types.append(f"({component_types})")
            else:
                output_types.append(o["type"])

        if not output_types:
            return None

        decoded = decode(output_types, bytes(data))
        return decoded[0] if len(decoded) == 1 else decoded

    async def call_contract(
        self,
        address: str,
        abi: list[dict],
        function_name: str,
        args: list[Any] | None = None,
    ) -> Any:
        """Call contract function (read-only).

        Args:
            address: Contract address
            abi: Contract ABI
            function_name: Function name
            args: Function arguments

        Returns:
            Decoded function result
        """
        checksum_address = Web3.to_checksum_address(address)
        data = self.encode_function_call(abi, function_name, args)
        tx_params: TxParams = {"to": checksum_address, "data": data}
        result = await self.client.eth_call(tx_params)
        return self.decode_function_result(abi, function_name, result)

    async def call_binding(
        self,
        binding: ContractBinding,
        function_name: str,
        args: list[Any] | None = None,
    ) -> Any:
        """Call a read function on a registered binding.

        Raises:
            FatalChainError: If the RPC call fails or the result cannot be decoded
        """
        abi = self.abi_loader.get_abi(binding.abi_schema)
        try:
            return await self.call_contract(
                binding.contract_address, abi, function_name, args
            )
        except Exception as e:
            logger.warning(
                f"Read {function_name} on {binding.contract_address} failed: {e}"
            )
            raise FatalChainError(f"{function_name} read failed: {e}", cause=e) from e

    # =========================================================================
    # Edition contract reads
    # =========================================================================

    async def total_campaigns(self, binding: ContractBinding) -> int:
        """Number of campaigns created so far (next campaign id)."""
        return int(await self.call_binding(binding, "totalCampaigns"))

    async def get_campaign(
        self, binding: ContractBinding, campaign_id: int
    ) -> CampaignSnapshot:
        """Read and decode campaign state through the version layout."""
        layout = get_layout(binding.contract_version)
        raw = await self.call_binding(binding, layout.campaign_getter, [campaign_id])
        try:
            return layout.decode_campaign(campaign_id, raw)
        except ValueError as e:
            raise FatalChainError(
                f"Campaign {campaign_id} has an unexpected layout: {e}", cause=e
            ) from e

    async def get_edition_info(
        self, binding: ContractBinding, token_id: int
    ) -> EditionInfo:
        """Read campaign and edition number for a token."""
        campaign_id, edition_number, total_editions = await self.call_binding(
            binding, "getEditionInfo", [token_id]
        )
        return EditionInfo(
            token_id=token_id,
            campaign_id=int(campaign_id),
            edition_number=int(edition_number),
            total_editions=int(total_editions),
        )

    async def balance_of(self, binding: ContractBinding, owner: str) -> int:
        return int(
            await self.call_binding(
                binding, "balanceOf", [Web3.to_checksum_address(owner)]
            )
        )

    async def token_of_owner_by_index(
        self, binding: ContractBinding, owner: str, index: int
    ) -> int:
        return int(
            await self.call_binding(
                binding,
                "tokenOfOwnerByIndex",
                [Web3.to_checksum_address(owner), index],
            )
        )

    async def token_uri(self, binding: ContractBinding, token_id: int) -> str:
        return await self.call_binding(binding, "tokenURI", [token_id])

    async def token_flags(
        self, binding: ContractBinding, token_id: int
    ) -> tuple[bool, bool]:
        """Frozen and soulbound flags; (False, False) on versions without them."""
        if not binding.supports_token_flags:
            return False, False
        frozen = await self.call_binding(binding, "isTokenFrozen", [token_id])
        soulbound = await self.call_binding(binding, "isTokenSoulbound", [token_id])
        return bool(frozen), bool(soulbound)
