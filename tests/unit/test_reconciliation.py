"""Tests for purchase reconciliation."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pledge.core.exceptions import ReconciliationError, UnknownChainError
from pledge.repositories.purchase import PurchaseEventRepository, PurchaseRepository
from pledge.repositories.submission import SubmissionRepository
from pledge.repositories.token import TokenRepository
from pledge.services.notifications import NotificationKind, NotificationResult
from pledge.services.reconciliation import PurchaseInput, PurchaseReconciler
from tests.conftest import TEST_ADDRESS, V6_ADDRESS

SERVICE = "pledge.services.reconciliation.service"


def tx_hash(n: int) -> str:
    return "0x" + format(n, "064x")


def make_input(n: int = 1, **overrides) -> PurchaseInput:
    values = {
        "tx_hash": tx_hash(n),
        "campaign_id": 2,
        "quantity": 2,
        "wallet_address": TEST_ADDRESS,
        "minted_token_ids": [10 * n, 10 * n + 1],
        "edition_numbers": {10 * n: 1, 10 * n + 1: 2},
        "amount_usd": Decimal("20"),
        "amount_native": 400,
        "tip_usd": Decimal("5"),
        "tip_native": 100,
        "chain_id": 1043,
        "contract_address": V6_ADDRESS,
        "buyer_email": "buyer@example.com",
    }
    values.update(overrides)
    return PurchaseInput(**values)


def make_notifier(sent: bool = True) -> MagicMock:
    notifier = MagicMock()
    notifier.send = AsyncMock(return_value=NotificationResult(sent=sent))
    return notifier


async def seed_campaign(session_factory, **overrides) -> int:
    values = {
        "title": "Clean water",
        "metadata_uri": "ipfs://QmMeta",
        "goal": Decimal("1000"),
        "num_copies": 100,
        "price_per_copy": Decimal("10"),
        "status": "minted",
        "campaign_id": 2,
        "chain_id": 1043,
        "contract_address": V6_ADDRESS,
        "contract_version": "v6",
        "creator_email": "creator@example.com",
    }
    values.update(overrides)
    async with session_factory() as session:
        submission = await SubmissionRepository(session).create(values)
        await session.commit()
        return submission.id


class TestPurchaseReconciler:
    """Tests for PurchaseReconciler.reconcile."""

    def make_reconciler(self, session_factory, registry, settings, notifier=None):
        return PurchaseReconciler(
            session_factory=session_factory,
            registry=registry,
            notifier=notifier or make_notifier(),
            settings=settings,
        )

    @pytest.mark.asyncio
    async def test_reconcile_records_purchase(self, session_factory, registry, settings):
        """Test a first reconciliation stores everything and updates counters."""
        submission_id = await seed_campaign(session_factory)
        reconciler = self.make_reconciler(session_factory, registry, settings)

        result = await reconciler.reconcile(make_input())

        assert result.duplicate is False
        assert result.purchase.tx_hash == tx_hash(1)
        assert result.purchase.minted_token_ids == [10, 11]
        assert result.sold_count == 2
        # 2 editions at $10 plus a $5 tip
        assert result.total_raised == Decimal("25.00")
        assert result.step_errors == []

        async with session_factory() as session:
            submission = await SubmissionRepository(session).get_by_id(submission_id)
            tokens = await TokenRepository(session).get_by_owner(TEST_ADDRESS.lower())
        assert submission.sold_count == 2
        assert submission.total_raised == Decimal("25.00")
        assert [t.token_id for t in tokens] == [10, 11]
        assert [t.edition_number for t in tokens] == [1, 2]
        assert tokens[0].mint_tx_hash == tx_hash(1)

    @pytest.mark.asyncio
    async def test_reconcile_twice_is_idempotent(self, session_factory, registry, settings):
        """Test the same tx_hash yields one record and one increment."""
        submission_id = await seed_campaign(session_factory)
        notifier = make_notifier()
        reconciler = self.make_reconciler(session_factory, registry, settings, notifier)

        first = await reconciler.reconcile(make_input())
        second = await reconciler.reconcile(make_input())

        assert first.duplicate is False
        assert second.duplicate is True
        assert second.purchase.id == first.purchase.id
        async with session_factory() as session:
            assert await PurchaseRepository(session).count(tx_hash=tx_hash(1)) == 1
            assert await SubmissionRepository(session).get_sold_count(submission_id) == 2
            # The event log is informational and keeps both calls
            assert await PurchaseEventRepository(session).count(tx_hash=tx_hash(1)) == 2
        # Emails go out once
        assert notifier.send.await_count == 2

    @pytest.mark.asyncio
    async def test_totals_aggregate_across_purchases(self, session_factory, registry, settings):
        """Test total_raised is recomputed from all stored tips."""
        await seed_campaign(session_factory)
        reconciler = self.make_reconciler(session_factory, registry, settings)

        await reconciler.reconcile(make_input(1))
        result = await reconciler.reconcile(
            make_input(2, quantity=1, minted_token_ids=[20], edition_numbers={20: 3},
                       tip_usd=Decimal("2.50"))
        )

        assert result.sold_count == 3
        assert result.total_raised == Decimal("37.50")

    @pytest.mark.asyncio
    async def test_hash_case_is_one_purchase(self, session_factory, registry, settings):
        """Test upper- and lower-case forms of one hash are the same purchase."""
        submission_id = await seed_campaign(session_factory)
        reconciler = self.make_reconciler(session_factory, registry, settings)
        lower = "0x" + "ab" * 32

        first = await reconciler.reconcile(make_input(tx_hash=lower))
        second = await reconciler.reconcile(make_input(tx_hash="0x" + "AB" * 32))

        assert first.duplicate is False
        assert second.duplicate is True
        assert second.purchase.tx_hash == lower
        async with session_factory() as session:
            assert await PurchaseRepository(session).count(tx_hash=lower) == 1
            assert await SubmissionRepository(session).get_sold_count(submission_id) == 2
            found = await PurchaseRepository(session).get_by_tx_hash("0x" + "Ab" * 32)
        assert found is not None

    @pytest.mark.asyncio
    async def test_concurrent_purchases_sum(self, file_session_factory, registry, settings):
        """Test two different purchases reconciled at once both count."""
        submission_id = await seed_campaign(file_session_factory)
        reconciler = self.make_reconciler(file_session_factory, registry, settings)

        results = await asyncio.gather(
            reconciler.reconcile(make_input(1)),
            reconciler.reconcile(
                make_input(2, quantity=1, minted_token_ids=[20], edition_numbers={20: 3},
                           tip_usd=Decimal("2.50"))
            ),
        )

        assert [r.step_errors for r in results] == [[], []]
        async with file_session_factory() as session:
            submission = await SubmissionRepository(session).get_by_id(submission_id)
            assert await PurchaseRepository(session).count(campaign_id=2) == 2
        assert submission.sold_count == 3
        # 3 editions at $10 plus $5 and $2.50 tips
        assert submission.total_raised == Decimal("37.50")

    @pytest.mark.asyncio
    async def test_notifications_reported(self, session_factory, registry, settings):
        """Test buyer receipt and creator notice flags."""
        await seed_campaign(session_factory)
        notifier = make_notifier()
        reconciler = self.make_reconciler(session_factory, registry, settings, notifier)

        result = await reconciler.reconcile(make_input())

        assert result.notifications_sent.buyer_receipt is True
        assert result.notifications_sent.creator_notice is True
        assert result.email_sent is True
        kinds = [c.args[1] for c in notifier.send.await_args_list]
        assert kinds == [NotificationKind.PURCHASE_RECEIPT, NotificationKind.EDITION_SOLD]
        creator_data = notifier.send.await_args_list[1].args[2]
        assert creator_data["sold_count"] == 2

    @pytest.mark.asyncio
    async def test_notification_failure_is_swallowed(self, session_factory, registry, settings):
        """Test a raising notifier never fails the reconciliation."""
        await seed_campaign(session_factory)
        notifier = MagicMock()
        notifier.send = AsyncMock(side_effect=RuntimeError("smtp down"))
        reconciler = self.make_reconciler(session_factory, registry, settings, notifier)

        result = await reconciler.reconcile(make_input())

        assert result.sold_count == 2
        assert result.email_sent is False
        assert result.notifications_sent.creator_notice is False

    @pytest.mark.asyncio
    async def test_missing_campaign_reported(self, session_factory, registry, settings):
        """Test a purchase for an uncached campaign is stored with a step error."""
        reconciler = self.make_reconciler(session_factory, registry, settings)

        result = await reconciler.reconcile(make_input())

        assert result.purchase.tx_hash == tx_hash(1)
        assert result.sold_count is None
        assert result.step_errors == ["sold_count: campaign 2 not cached"]
        assert result.notifications_sent.buyer_receipt is True
        assert result.notifications_sent.creator_notice is False

    @pytest.mark.asyncio
    async def test_event_log_failure_is_not_fatal(self, session_factory, registry, settings):
        """Test a failed event append still stores the purchase."""
        await seed_campaign(session_factory)
        reconciler = self.make_reconciler(session_factory, registry, settings)

        with patch(
            f"{SERVICE}.PurchaseEventRepository.append",
            AsyncMock(side_effect=RuntimeError("log table locked")),
        ):
            result = await reconciler.reconcile(make_input())

        assert result.sold_count == 2
        assert result.step_errors == ["event_log: log table locked"]

    @pytest.mark.asyncio
    async def test_token_failure_is_not_fatal(self, session_factory, registry, settings):
        """Test a failed token upsert is reported and counters still update."""
        await seed_campaign(session_factory)
        reconciler = self.make_reconciler(session_factory, registry, settings)

        with patch(
            f"{SERVICE}.TokenRepository.upsert_many",
            AsyncMock(side_effect=RuntimeError("constraint")),
        ):
            result = await reconciler.reconcile(make_input())

        assert result.sold_count == 2
        assert result.step_errors == ["tokens: constraint"]

    @pytest.mark.asyncio
    async def test_purchase_write_failure_is_fatal(self, session_factory, registry, settings):
        """Test a failed purchase insert raises and nothing else runs."""
        submission_id = await seed_campaign(session_factory)
        notifier = make_notifier()
        reconciler = self.make_reconciler(session_factory, registry, settings, notifier)

        with patch(
            f"{SERVICE}.PurchaseRepository.insert_if_absent",
            AsyncMock(side_effect=RuntimeError("db down")),
        ):
            with pytest.raises(ReconciliationError, match="db down"):
                await reconciler.reconcile(make_input())

        async with session_factory() as session:
            assert await SubmissionRepository(session).get_sold_count(submission_id) == 0
        notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unregistered_contract(self, session_factory, registry, settings):
        """Test a purchase against an unknown contract is rejected."""
        reconciler = self.make_reconciler(session_factory, registry, settings)

        with pytest.raises(UnknownChainError):
            await reconciler.reconcile(
                make_input(contract_address="0x" + "12" * 20)
            )

    def test_tx_hash_format(self):
        """Test malformed hashes are rejected at the boundary."""
        with pytest.raises(ValueError):
            make_input(tx_hash="0x1234")
