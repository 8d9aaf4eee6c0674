"""Transaction submission with nonce handling, gas escalation and retries.

Provides functionality to sign and send one contract call with:
- Nonce read from the pending pool first, from confirmed state on retries
- Gas price escalation per attempt
- Classification of node rejections into success-pending, retryable, fatal
- Receipt waiting with a confirmation depth
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from web3 import Web3

from pledge.core.config import Settings
from pledge.core.exceptions import FatalChainError, RetryableChainError
from pledge.infrastructure.blockchain.client import ChainClient, to_hex_hash
from pledge.infrastructure.blockchain.contracts import ABILoader, get_abi_loader
from pledge.infrastructure.blockchain.registry import (
    ChainRegistry,
    ContractBinding,
    get_chain_registry,
)
from pledge.infrastructure.blockchain.signer import SignerContext, SignerRole, get_signer

logger = logging.getLogger(__name__)

# Returned when the node reports the transaction is already in its mempool
PENDING_TX_PLACEHOLDER = "(pending in mempool)"

ALREADY_KNOWN_MARKERS = ("already known",)
RETRYABLE_MARKERS = (
    "nonce too low",
    "nonce has already been used",
    "invalid nonce",
    "nonce expired",
    "nonce_expired",
    "replacement transaction underpriced",
    "replacement underpriced",
    "replacement_underpriced",
)


class AttemptOutcome(str, Enum):
    """Outcome of a single broadcast attempt."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    RETRYABLE_ERROR = "retryable_error"
    FATAL_ERROR = "fatal_error"


class SubmissionStatus(str, Enum):
    """Terminal status of a submission."""

    CONFIRMED = "confirmed"
    PENDING = "pending"


class ErrorClass(str, Enum):
    ALREADY_KNOWN = "already_known"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass
class TransactionAttempt:
    """One signed broadcast; kept in memory for the duration of a submit."""

    attempt_number: int
    nonce: int
    gas_price: int
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    error: str | None = None


@dataclass
class ContractCall:
    """A state-mutating call against a registered contract."""

    binding: ContractBinding
    function_name: str
    args: list[Any] = field(default_factory=list)
    value: int = 0
    gas_limit: int | None = None


@dataclass
class SubmitConfig:
    """Retry and confirmation policy for one submission."""

    max_attempts: int = 5
    gas_escalation_percent: int = 20
    backoff_base_seconds: float = 2.0
    confirmations: int = 1
    receipt_timeout: float = 120
    gas_limit: int = 800_000
    deadline_seconds: float | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, confirmations: int | None = None
    ) -> "SubmitConfig":
        return cls(
            max_attempts=settings.tx_max_attempts,
            gas_escalation_percent=settings.tx_gas_escalation_percent,
            backoff_base_seconds=settings.tx_backoff_base_seconds,
            confirmations=1 if confirmations is None else confirmations,
            receipt_timeout=settings.tx_receipt_timeout,
            gas_limit=settings.tx_default_gas_limit,
        )


@dataclass
class SubmitResult:
    """Terminal result of a submission."""

    tx_hash: str
    status: SubmissionStatus
    predicted_id: int | None = None
    signed_tx_hash: str | None = None
    receipt: dict[str, Any] | None = None
    block_number: int | None = None
    gas_used: int | None = None
    attempts: list[TransactionAttempt] = field(default_factory=list)

    @property
    def is_confirmed(self) -> bool:
        return self.status == SubmissionStatus.CONFIRMED


def _error_text(exc: BaseException) -> str:
    """Flatten message, code and RPC payload into one searchable string."""
    parts = [str(exc)]
    code = getattr(exc, "code", None)
    if code is not None:
        parts.append(str(code))
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict):
        error = rpc_response.get("error")
        if isinstance(error, dict):
            parts.append(str(error.get("message", "")))
    for arg in exc.args:
        if isinstance(arg, dict):
            parts.append(str(arg.get("message", "")))
            parts.append(str(arg.get("code", "")))
    return " ".join(parts).lower()


def classify_error(exc: BaseException) -> ErrorClass:
    """Classify a broadcast failure.

    Args:
        exc: Exception raised by the RPC layer

    Returns:
        ALREADY_KNOWN, RETRYABLE or FATAL
    """
    text = _error_text(exc)
    if any(marker in text for marker in ALREADY_KNOWN_MARKERS):
        return ErrorClass.ALREADY_KNOWN
    if any(marker in text for marker in RETRYABLE_MARKERS):
        return ErrorClass.RETRYABLE
    return ErrorClass.FATAL


def escalate_gas_price(base_price: int, attempt_number: int, percent: int = 20) -> int:
    """Gas bid for an attempt: base * (100 + percent*i) / 100."""
    return int(base_price) * (100 + percent * attempt_number) // 100


class TransactionSubmitter:
    """Submits contract calls for one signer on one chain.

    The signer's nonce lock is held from the first nonce read until the
    broadcast is accepted or definitively rejected. Receipt waiting happens
    outside the lock.
    """

    def __init__(
        self,
        client: ChainClient,
        signer: SignerContext,
        abi_loader: ABILoader | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize transaction submitter.

        Args:
            client: Chain client for the binding's chain
            signer: Role signer whose nonce sequence this submitter uses
            abi_loader: ABI source (bundled ABIs by default)
            sleep: Awaitable used for retry backoff
        """
        self.client = client
        self.signer = signer
        self.abi_loader = abi_loader or get_abi_loader()
        self._sleep = sleep
        self.w3 = Web3()

    @property
    def address(self) -> str:
        """Get the signer address."""
        return self.signer.address

    def _encode(self, call: ContractCall) -> bytes:
        abi = self.abi_loader.get_abi(call.binding.abi_schema)
        contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(call.binding.contract_address),
            abi=abi,
        )
        func = contract.get_function_by_name(call.function_name)
        return func(*call.args)._encode_transaction_data()

    async def _predict(
        self, predict_id: Callable[[], Awaitable[int]] | None
    ) -> int | None:
        if predict_id is None:
            return None
        try:
            return int(await predict_id())
        except Exception as e:
            logger.debug(f"Identifier prediction failed: {e}")
            return None

    async def _broadcast(self, raw_transaction: bytes) -> str:
        """Send a signed transaction.

        Raises:
            RetryableChainError: On a nonce race or underpriced replacement
        """
        try:
            return await self.client.send_raw_transaction(raw_transaction)
        except Exception as e:
            if classify_error(e) == ErrorClass.RETRYABLE:
                raise RetryableChainError(str(e)) from e
            raise

    async def submit(
        self,
        call: ContractCall,
        config: SubmitConfig | None = None,
        predict_id: Callable[[], Awaitable[int]] | None = None,
    ) -> SubmitResult:
        """Sign, broadcast and optionally confirm one call.

        Args:
            call: Contract call to submit
            config: Retry and confirmation policy
            predict_id: Optional reader for the identifier the call will be
                assigned (best effort, read before the first broadcast)

        Returns:
            SubmitResult with CONFIRMED status, or PENDING when the node
            already knows the transaction or the receipt wait timed out

        Raises:
            FatalChainError: On a fatal rejection, a revert, or when retryable
                errors exhaust max_attempts or the deadline
        """
        config = config or SubmitConfig()
        chain_id = call.binding.chain_id

        data = self._encode(call)
        to_address = Web3.to_checksum_address(call.binding.contract_address)
        gas_limit = call.gas_limit or config.gas_limit
        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + config.deadline_seconds
            if config.deadline_seconds is not None
            else None
        )

        attempts: list[TransactionAttempt] = []
        predicted_id: int | None = None
        last_error: BaseException | None = None
        tx_hash: str | None = None
        signed_hash: str | None = None

        async with self.signer.nonce_lock:
            for attempt_number in range(config.max_attempts):
                # A failed broadcast can leave the pending count stale
                block_tag = "pending" if attempt_number == 0 else "latest"
                try:
                    nonce = await self.client.get_transaction_count(
                        self.signer.address, block_tag
                    )
                    base_price = await self.client.get_gas_price()
                except Exception as e:
                    logger.error(
                        f"Pre-broadcast read for {call.function_name} failed: {e}"
                    )
                    raise FatalChainError(
                        f"Chain read failed: {e}", cause=e, attempts=attempts
                    ) from e
                gas_price = escalate_gas_price(
                    base_price, attempt_number, config.gas_escalation_percent
                )
                attempt = TransactionAttempt(
                    attempt_number=attempt_number, nonce=nonce, gas_price=gas_price
                )
                attempts.append(attempt)

                if attempt_number == 0:
                    predicted_id = await self._predict(predict_id)

                tx = {
                    "to": to_address,
                    "data": data,
                    "gas": gas_limit,
                    "gasPrice": gas_price,
                    "nonce": nonce,
                    "chainId": chain_id,
                    "value": call.value,
                }
                signed_tx = self.signer.account.sign_transaction(tx)
                signed_hash = to_hex_hash(signed_tx.hash)

                try:
                    tx_hash = await self._broadcast(signed_tx.raw_transaction)
                except RetryableChainError as e:
                    attempt.outcome = AttemptOutcome.RETRYABLE_ERROR
                    attempt.error = str(e)
                    last_error = e.__cause__ or e
                    if attempt_number + 1 >= config.max_attempts:
                        break

                    delay = config.backoff_base_seconds * (attempt_number + 1)
                    if deadline is not None and loop.time() + delay > deadline:
                        raise FatalChainError(
                            f"Retry deadline reached: {e}",
                            cause=last_error,
                            attempts=attempts,
                        ) from e
                    logger.warning(
                        f"{call.function_name} attempt {attempt_number + 1}/"
                        f"{config.max_attempts} retryable ({e}), retrying in {delay}s"
                    )
                    await self._sleep(delay)
                    continue
                except Exception as e:
                    if classify_error(e) == ErrorClass.ALREADY_KNOWN:
                        attempt.outcome = AttemptOutcome.PENDING
                        logger.info(
                            f"{call.function_name} already in mempool "
                            f"(nonce {nonce}, signed {signed_hash})"
                        )
                        return SubmitResult(
                            tx_hash=PENDING_TX_PLACEHOLDER,
                            status=SubmissionStatus.PENDING,
                            predicted_id=predicted_id,
                            signed_tx_hash=signed_hash,
                            attempts=attempts,
                        )

                    attempt.error = str(e)
                    attempt.outcome = AttemptOutcome.FATAL_ERROR
                    logger.error(f"{call.function_name} on {to_address} failed: {e}")
                    raise FatalChainError(str(e), cause=e, attempts=attempts) from e

                logger.info(
                    f"Transaction sent: {tx_hash}, function: {call.function_name}, "
                    f"contract: {to_address}, nonce: {nonce}"
                )
                break

            if tx_hash is None:
                raise FatalChainError(
                    f"Retries exhausted after {len(attempts)} attempts: {last_error}",
                    cause=last_error,
                    attempts=attempts,
                ) from last_error

        return await self._await_confirmation(
            tx_hash, signed_hash, predicted_id, attempts, config
        )

    async def _await_confirmation(
        self,
        tx_hash: str,
        signed_hash: str,
        predicted_id: int | None,
        attempts: list[TransactionAttempt],
        config: SubmitConfig,
    ) -> SubmitResult:
        """Wait for the receipt of a broadcast transaction."""
        attempt = attempts[-1]
        pending = SubmitResult(
            tx_hash=tx_hash,
            status=SubmissionStatus.PENDING,
            predicted_id=predicted_id,
            signed_tx_hash=signed_hash,
            attempts=attempts,
        )
        if config.confirmations <= 0:
            return pending

        try:
            receipt = await self.client.wait_for_transaction_receipt(
                tx_hash,
                timeout=config.receipt_timeout,
                confirmations=config.confirmations,
            )
        except TimeoutError:
            # Broadcast stands; it may still confirm later
            logger.warning(f"Transaction {tx_hash} not confirmed within timeout")
            return pending
        except Exception as e:
            # Same as a timeout; the transaction was accepted
            logger.warning(f"Receipt read for {tx_hash} failed: {e}")
            return pending

        if receipt.get("status") != 1:
            attempt.outcome = AttemptOutcome.FATAL_ERROR
            attempt.error = "reverted"
            raise FatalChainError(
                f"Transaction reverted: {tx_hash}", attempts=attempts
            )

        attempt.outcome = AttemptOutcome.CONFIRMED
        return SubmitResult(
            tx_hash=tx_hash,
            status=SubmissionStatus.CONFIRMED,
            predicted_id=predicted_id,
            signed_tx_hash=signed_hash,
            receipt=receipt,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            attempts=attempts,
        )


def get_transaction_submitter(
    role: SignerRole,
    chain_id: int,
    registry: ChainRegistry | None = None,
) -> TransactionSubmitter:
    """Create a submitter for a writer role on one chain.

    Args:
        role: Writer role whose key signs the transactions
        chain_id: Target chain
        registry: Chain registry (process-wide registry if not provided)

    Returns:
        Configured TransactionSubmitter

    Raises:
        ValueError: If no key is configured for the role
    """
    registry = registry or get_chain_registry()
    return TransactionSubmitter(
        client=registry.client_for(chain_id),
        signer=get_signer(role),
    )
