"""Tests for the transaction submitter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pledge.core.exceptions import FatalChainError, RetryableChainError
from pledge.infrastructure.blockchain.contracts import get_abi_loader
from pledge.infrastructure.blockchain.registry import ContractBinding, ContractVersion
from pledge.infrastructure.blockchain.signer import SignerContext, SignerRole
from pledge.infrastructure.blockchain.transaction import (
    PENDING_TX_PLACEHOLDER,
    AttemptOutcome,
    ContractCall,
    ErrorClass,
    SubmissionStatus,
    SubmitConfig,
    TransactionSubmitter,
    classify_error,
    escalate_gas_price,
)
from tests.conftest import TEST_ADDRESS, TEST_PRIVATE_KEY, V6_ADDRESS

BASE_GAS_PRICE = 1_000_000_000
TX_HASH = "0x" + "ab" * 32


def make_binding() -> ContractBinding:
    return ContractBinding(
        chain_id=1043,
        contract_address=V6_ADDRESS,
        contract_version=ContractVersion.V6,
        abi_schema="PledgeEditionsV6",
        is_active=True,
    )


def make_client(send_side_effect=None, receipt=None) -> MagicMock:
    client = MagicMock()
    client.get_transaction_count = AsyncMock(return_value=7)
    client.get_gas_price = AsyncMock(return_value=BASE_GAS_PRICE)
    client.send_raw_transaction = AsyncMock(
        side_effect=send_side_effect, return_value=TX_HASH
    )
    client.wait_for_transaction_receipt = AsyncMock(
        return_value=receipt
        or {"status": 1, "blockNumber": 100, "gasUsed": 90_000, "logs": []}
    )
    return client


def make_submitter(client: MagicMock, sleep: AsyncMock | None = None) -> TransactionSubmitter:
    return TransactionSubmitter(
        client=client,
        signer=SignerContext(SignerRole.PURCHASER, TEST_PRIVATE_KEY),
        abi_loader=get_abi_loader(),
        sleep=sleep or AsyncMock(),
    )


def mint_call() -> ContractCall:
    return ContractCall(
        binding=make_binding(), function_name="mintWithBDAG", args=[0], value=10
    )


class TestErrorClassification:
    """Tests for broadcast error classification."""

    @pytest.mark.parametrize(
        "message",
        [
            "nonce too low",
            "Nonce has already been used",
            "invalid nonce",
            "NONCE_EXPIRED",
            "replacement transaction underpriced",
        ],
    )
    def test_retryable_messages(self, message):
        """Test nonce and replacement errors are retryable."""
        assert classify_error(Exception(message)) == ErrorClass.RETRYABLE

    def test_already_known_wins(self):
        """Test already-known takes precedence over other markers."""
        exc = Exception("already known (nonce too low)")
        assert classify_error(exc) == ErrorClass.ALREADY_KNOWN

    def test_rpc_payload_is_searched(self):
        """Test markers inside an RPC error dict are found."""
        exc = ValueError({"code": -32000, "message": "replacement transaction underpriced"})
        assert classify_error(exc) == ErrorClass.RETRYABLE

    def test_other_errors_are_fatal(self):
        """Test anything else is fatal."""
        assert classify_error(Exception("execution reverted")) == ErrorClass.FATAL
        assert classify_error(Exception("insufficient funds for gas")) == ErrorClass.FATAL

    def test_gas_escalation(self):
        """Test each attempt bids 20% more than the base price."""
        assert escalate_gas_price(100, 0) == 100
        assert escalate_gas_price(100, 1) == 120
        assert escalate_gas_price(100, 2) == 140
        assert escalate_gas_price(BASE_GAS_PRICE, 4) == 1_800_000_000


class TestTransactionSubmitter:
    """Tests for TransactionSubmitter.submit."""

    @pytest.mark.asyncio
    async def test_confirmed_on_first_attempt(self):
        """Test a clean submission returns the confirmed hash and receipt."""
        client = make_client()
        submitter = make_submitter(client)

        result = await submitter.submit(mint_call())

        assert result.status == SubmissionStatus.CONFIRMED
        assert result.tx_hash == TX_HASH
        assert result.block_number == 100
        assert len(result.attempts) == 1
        assert result.attempts[0].outcome == AttemptOutcome.CONFIRMED
        client.get_transaction_count.assert_awaited_once_with(TEST_ADDRESS, "pending")

    @pytest.mark.asyncio
    async def test_retry_escalation(self):
        """Test two nonce conflicts then success bid 140% on the third attempt."""
        client = make_client(
            send_side_effect=[
                Exception("nonce too low"),
                Exception("nonce too low"),
                TX_HASH,
            ]
        )
        sleep = AsyncMock()
        submitter = make_submitter(client, sleep)

        result = await submitter.submit(mint_call(), SubmitConfig(backoff_base_seconds=2.0))

        assert result.is_confirmed
        assert len(result.attempts) == 3
        assert client.send_raw_transaction.await_count == 3
        assert result.attempts[2].gas_price == BASE_GAS_PRICE * 140 // 100
        assert [a.gas_price for a in result.attempts] == [
            1_000_000_000,
            1_200_000_000,
            1_400_000_000,
        ]
        # Linear backoff: 2s then 4s
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]
        # First read from the pending pool, retries from confirmed state
        tags = [c.args[1] for c in client.get_transaction_count.await_args_list]
        assert tags == ["pending", "latest", "latest"]

    @pytest.mark.asyncio
    async def test_already_known_short_circuit(self):
        """Test already-known on the first attempt returns pending without retrying."""
        client = make_client(send_side_effect=[Exception("already known")])
        sleep = AsyncMock()
        submitter = make_submitter(client, sleep)
        predict = AsyncMock(return_value=42)

        result = await submitter.submit(mint_call(), predict_id=predict)

        assert result.status == SubmissionStatus.PENDING
        assert result.tx_hash == PENDING_TX_PLACEHOLDER
        assert result.predicted_id == 42
        assert result.signed_tx_hash.startswith("0x")
        assert len(result.attempts) == 1
        client.send_raw_transaction.assert_awaited_once()
        sleep.assert_not_awaited()
        client.wait_for_transaction_receipt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fatal_error_raises_immediately(self):
        """Test a fatal rejection is not retried."""
        client = make_client(send_side_effect=[Exception("insufficient funds for gas")])
        sleep = AsyncMock()
        submitter = make_submitter(client, sleep)

        with pytest.raises(FatalChainError) as exc_info:
            await submitter.submit(mint_call())

        assert "insufficient funds" in str(exc_info.value)
        assert len(exc_info.value.attempts) == 1
        assert exc_info.value.attempts[0].outcome == AttemptOutcome.FATAL_ERROR
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        """Test exhausting max_attempts surfaces the last error as fatal."""
        client = make_client(send_side_effect=Exception("replacement transaction underpriced"))
        sleep = AsyncMock()
        submitter = make_submitter(client, sleep)

        with pytest.raises(FatalChainError) as exc_info:
            await submitter.submit(mint_call(), SubmitConfig(max_attempts=3))

        assert "underpriced" in str(exc_info.value)
        assert client.send_raw_transaction.await_count == 3
        # No sleep after the final attempt
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_deadline_stops_retries(self):
        """Test a backoff past the deadline raises instead of sleeping."""
        client = make_client(send_side_effect=Exception("nonce too low"))
        sleep = AsyncMock()
        submitter = make_submitter(client, sleep)

        with pytest.raises(FatalChainError):
            await submitter.submit(
                mint_call(),
                SubmitConfig(backoff_base_seconds=10.0, deadline_seconds=1.0),
            )

        assert client.send_raw_transaction.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_revert_is_fatal(self):
        """Test a receipt with status 0 raises."""
        client = make_client(receipt={"status": 0, "blockNumber": 5, "logs": []})
        submitter = make_submitter(client)

        with pytest.raises(FatalChainError, match="reverted"):
            await submitter.submit(mint_call())

    @pytest.mark.asyncio
    async def test_receipt_timeout_returns_pending(self):
        """Test a receipt timeout keeps the real hash and reports pending."""
        client = make_client()
        client.wait_for_transaction_receipt = AsyncMock(side_effect=TimeoutError())
        submitter = make_submitter(client)

        result = await submitter.submit(mint_call())

        assert result.status == SubmissionStatus.PENDING
        assert result.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_receipt_read_failure_returns_pending(self):
        """Test an RPC error after broadcast does not report the write as failed."""
        client = make_client()
        client.wait_for_transaction_receipt = AsyncMock(
            side_effect=ConnectionError("All RPCs failed")
        )
        submitter = make_submitter(client)

        result = await submitter.submit(mint_call())

        assert result.status == SubmissionStatus.PENDING
        assert result.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_no_confirmation_requested(self):
        """Test confirmations=0 returns right after broadcast."""
        client = make_client()
        submitter = make_submitter(client)

        result = await submitter.submit(mint_call(), SubmitConfig(confirmations=0))

        assert result.status == SubmissionStatus.PENDING
        assert result.tx_hash == TX_HASH
        client.wait_for_transaction_receipt.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_prediction_failure_is_ignored(self):
        """Test a failing id prediction yields None and the submission proceeds."""
        client = make_client()
        submitter = make_submitter(client)

        result = await submitter.submit(
            mint_call(), predict_id=AsyncMock(side_effect=Exception("rpc down"))
        )

        assert result.is_confirmed
        assert result.predicted_id is None

    @pytest.mark.asyncio
    async def test_exhausted_retries_keep_node_error_as_cause(self):
        """Test the fatal error carries the node's last rejection, not the wrapper."""
        node_error = Exception("nonce too low")
        client = make_client(send_side_effect=node_error)
        submitter = make_submitter(client)

        with pytest.raises(FatalChainError) as exc_info:
            await submitter.submit(mint_call(), SubmitConfig(max_attempts=2))

        assert exc_info.value.cause is node_error
        assert all(
            a.outcome == AttemptOutcome.RETRYABLE_ERROR for a in exc_info.value.attempts
        )

    @pytest.mark.asyncio
    async def test_nonce_read_failure_is_fatal(self):
        """Test an RPC failure before broadcast surfaces as a chain error."""
        client = make_client()
        client.get_transaction_count = AsyncMock(side_effect=ConnectionError("rpc down"))
        submitter = make_submitter(client)

        with pytest.raises(FatalChainError, match="rpc down"):
            await submitter.submit(mint_call())

        client.send_raw_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_gas_price_read_failure_is_fatal(self):
        """Test a failing gas price read never reaches the broadcast."""
        client = make_client()
        client.get_gas_price = AsyncMock(side_effect=ValueError("bad response"))
        submitter = make_submitter(client)

        with pytest.raises(FatalChainError) as exc_info:
            await submitter.submit(mint_call())

        assert isinstance(exc_info.value.cause, ValueError)
        client.send_raw_transaction.assert_not_awaited()


class TestBroadcast:
    """Tests for the broadcast classification step."""

    @pytest.mark.asyncio
    async def test_retryable_rejection_is_wrapped(self):
        """Test nonce races raise RetryableChainError chained to the node error."""
        node_error = Exception("replacement transaction underpriced")
        client = make_client(send_side_effect=node_error)
        submitter = make_submitter(client)

        with pytest.raises(RetryableChainError) as exc_info:
            await submitter._broadcast(b"\x01")

        assert exc_info.value.__cause__ is node_error

    @pytest.mark.asyncio
    async def test_other_rejections_pass_through(self):
        """Test non-retryable node errors are re-raised unchanged."""
        client = make_client(send_side_effect=Exception("already known"))
        submitter = make_submitter(client)

        with pytest.raises(Exception, match="already known") as exc_info:
            await submitter._broadcast(b"\x01")

        assert not isinstance(exc_info.value, RetryableChainError)
