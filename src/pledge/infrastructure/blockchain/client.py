"""EVM chain client with multi-RPC failover support."""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import Web3RPCError
from web3.middleware import ExtraDataToPOAMiddleware
from web3.types import BlockIdentifier, TxParams, Wei

logger = logging.getLogger(__name__)


class ChainClient(ABC):
    """Abstract base class for blockchain clients."""

    chain_id: int

    @abstractmethod
    async def get_block_number(self) -> int:
        """Get current block number."""
        ...

    @abstractmethod
    async def eth_call(
        self, transaction: TxParams, block_identifier: BlockIdentifier = "latest"
    ) -> bytes:
        """Execute eth_call (read-only contract call)."""
        ...

    @abstractmethod
    async def get_transaction_count(
        self, address: str, block_identifier: BlockIdentifier = "pending"
    ) -> int:
        """Get the nonce for an address at a block tag."""
        ...

    @abstractmethod
    async def get_gas_price(self) -> Wei:
        """Get current gas price."""
        ...

    @abstractmethod
    async def send_raw_transaction(self, signed_tx: bytes) -> str:
        """Broadcast a signed transaction."""
        ...

    @abstractmethod
    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: float = 120,
        poll_latency: float = 2.0,
        confirmations: int = 1,
    ) -> dict[str, Any]:
        """Block until a receipt is mined with enough confirmations."""
        ...


class EVMClient(ChainClient):
    """JSON-RPC client for one EVM chain with ordered RPC failover."""

    def __init__(
        self,
        rpc_urls: list[str],
        chain_id: int,
        poa: bool = False,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        """Initialize EVM client.

        Args:
            rpc_urls: List of RPC endpoints (primary + backups)
            chain_id: Chain ID served by the endpoints
            poa: Inject the extraData middleware for proof-of-authority chains
            max_retries: Maximum retry attempts per RPC
            retry_delay: Delay between retries in seconds
        """
        if not rpc_urls:
            raise ValueError(f"No RPC endpoints configured for chain {chain_id}")
        self.rpc_urls = list(rpc_urls)
        self.chain_id = chain_id
        self.poa = poa
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._current_rpc_index = 0
        self._web3: AsyncWeb3 | None = None

    @property
    def web3(self) -> AsyncWeb3:
        """Get or create Web3 instance."""
        if self._web3 is None:
            self._web3 = self._create_web3()
        return self._web3

    def _create_web3(self, rpc_index: int | None = None) -> AsyncWeb3:
        """Create Web3 instance for the specified RPC."""
        index = rpc_index if rpc_index is not None else self._current_rpc_index
        w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_urls[index]))
        if self.poa:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        return w3

    async def _execute_with_failover(
        self,
        method: str,
        *args: Any,
        retry_rpc_errors: bool = True,
        **kwargs: Any,
    ) -> Any:
        """Execute method with automatic RPC failover.

        Args:
            method: web3.eth method name to call
            *args: Positional arguments for the method
            retry_rpc_errors: When False, a node-level rejection is raised at
                once instead of being retried on the next endpoint
            **kwargs: Keyword arguments for the method

        Returns:
            Result from the Web3 method

        Raises:
            Web3RPCError: If all RPCs fail, or the node rejected the request
                and retry_rpc_errors is False
        """
        last_error: Exception | None = None

        for rpc_offset in range(len(self.rpc_urls)):
            rpc_index = (self._current_rpc_index + rpc_offset) % len(self.rpc_urls)
            web3 = self._create_web3(rpc_index)

            for attempt in range(self.max_retries):
                try:
                    web3_method = getattr(web3.eth, method)
                    result = await web3_method(*args, **kwargs)

                    self._current_rpc_index = rpc_index
                    self._web3 = web3

                    return result

                except Web3RPCError as e:
                    if not retry_rpc_errors:
                        raise
                    last_error = e
                    logger.warning(
                        f"RPC {self.rpc_urls[rpc_index]} failed (attempt {attempt + 1}): {e}"
                    )
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(self.retry_delay * (attempt + 1))

                except Exception as e:
                    last_error = e
                    logger.warning(
                        f"RPC {self.rpc_urls[rpc_index]} error (attempt {attempt + 1}): {e}"
                    )
                    if attempt < self.max_retries - 1:
                        await asyncio.sleep(self.retry_delay * (attempt + 1))

            logger.warning(
                f"Switching from RPC {self.rpc_urls[rpc_index]} to next backup"
            )

        raise Web3RPCError(f"All RPCs failed. Last error: {last_error}")

    async def get_block_number(self) -> int:
        """Get current block number."""
        return await self._execute_with_failover("get_block_number")

    async def eth_call(
        self, transaction: TxParams, block_identifier: BlockIdentifier = "latest"
    ) -> bytes:
        """Execute eth_call (read-only contract call)."""
        return await self._execute_with_failover("call", transaction, block_identifier)

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Get transaction receipt, None while the transaction is unmined."""
        try:
            receipt = await self._execute_with_failover(
                "get_transaction_receipt", tx_hash, retry_rpc_errors=False
            )
        except Web3RPCError:
            return None
        return dict(receipt) if receipt else None

    async def get_transaction_count(
        self, address: str, block_identifier: BlockIdentifier = "pending"
    ) -> int:
        """Get transaction count (nonce) for address at a block tag."""
        return await self._execute_with_failover(
            "get_transaction_count", address, block_identifier
        )

    async def get_gas_price(self) -> Wei:
        """Get current gas price."""
        # AsyncWeb3 exposes gas_price as an awaitable property
        return await self.web3.eth.gas_price

    async def send_raw_transaction(self, signed_tx: bytes) -> str:
        """Send signed raw transaction.

        Node rejections (nonce, underpriced, already known) are raised without
        failover so the caller can classify them.

        Args:
            signed_tx: Signed transaction bytes

        Returns:
            Transaction hash as 0x-prefixed hex string
        """
        tx_hash = await self._execute_with_failover(
            "send_raw_transaction", signed_tx, retry_rpc_errors=False
        )
        return to_hex_hash(tx_hash)

    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout: float = 120,
        poll_latency: float = 2.0,
        confirmations: int = 1,
    ) -> dict[str, Any]:
        """Wait for transaction receipt with timeout.

        Args:
            tx_hash: Transaction hash
            timeout: Maximum wait time in seconds
            poll_latency: Polling interval in seconds
            confirmations: Blocks required including the inclusion block

        Returns:
            Transaction receipt

        Raises:
            TimeoutError: If transaction not confirmed within timeout
        """
        elapsed = 0.0
        while elapsed < timeout:
            receipt = await self.get_transaction_receipt(tx_hash)
            block_number = receipt.get("blockNumber") if receipt else None
            if block_number is not None:
                if confirmations <= 1:
                    return receipt
                head = await self.get_block_number()
                if head - block_number + 1 >= confirmations:
                    return receipt
            await asyncio.sleep(poll_latency)
            elapsed += poll_latency

        raise TimeoutError(f"Transaction {tx_hash} not confirmed within {timeout}s")


def to_hex_hash(value: Any) -> str:
    """Normalize HexBytes/bytes/str hashes to 0x-prefixed hex."""
    if isinstance(value, (bytes, bytearray)):
        text = bytes(value).hex()
    elif hasattr(value, "hex") and not isinstance(value, str):
        text = value.hex()
    else:
        text = str(value)
    return text if text.startswith("0x") else f"0x{text}"
