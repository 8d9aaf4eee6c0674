"""Tests for campaign provisioning."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from pledge.core.exceptions import FatalChainError, NotFoundError, ValidationError
from pledge.infrastructure.blockchain.transaction import (
    PENDING_TX_PLACEHOLDER,
    SubmissionStatus,
    SubmitResult,
)
from pledge.models.submission import Submission
from pledge.repositories.submission import SubmissionRepository
from pledge.services.notifications import NotificationKind, NotificationResult
from pledge.services.provisioning import CampaignProvisioner, derive_economics
from tests.conftest import TEST_ADDRESS, V6_ADDRESS

CREATOR_WALLET = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
TX_HASH = "0x" + "cd" * 32


def make_submitter(result: SubmitResult) -> MagicMock:
    async def submit(call, config=None, predict_id=None):
        if predict_id is not None:
            await predict_id()
        return result

    submitter = MagicMock()
    submitter.address = TEST_ADDRESS
    submitter.submit = AsyncMock(side_effect=submit)
    return submitter


def make_contracts(next_campaign_id: int = 5) -> MagicMock:
    contracts = MagicMock()
    contracts.total_campaigns = AsyncMock(return_value=next_campaign_id)
    return contracts


def make_notifier(sent: bool = True) -> MagicMock:
    notifier = MagicMock()
    notifier.send = AsyncMock(return_value=NotificationResult(sent=sent))
    return notifier


async def seed_submission(session_factory, **overrides) -> int:
    values = {
        "title": "Clean water",
        "metadata_uri": "ipfs://QmMeta",
        "goal": Decimal("1000"),
        "num_copies": 100,
        "status": "approved",
        "creator_wallet": CREATOR_WALLET,
        "creator_email": "creator@example.com",
    }
    values.update(overrides)
    async with session_factory() as session:
        submission = await SubmissionRepository(session).create(values)
        await session.commit()
        return submission.id


async def load_submission(session_factory, submission_id: int) -> Submission:
    async with session_factory() as session:
        return await SubmissionRepository(session).get_by_id(submission_id)


class TestDeriveEconomics:
    """Tests for derive_economics."""

    def test_explicit_values(self):
        """Test stored copies and price are used as-is."""
        economics = derive_economics(
            Submission(goal=Decimal("500"), num_copies=50, price_per_copy=Decimal("12.50"))
        )
        assert economics.goal == Decimal("500")
        assert economics.max_editions == 50
        assert economics.price_per_edition == Decimal("12.50")

    def test_price_from_goal(self):
        """Test price is goal over copies, rounded down to cents."""
        economics = derive_economics(Submission(goal=Decimal("100"), num_copies=3))
        assert economics.price_per_edition == Decimal("33.33")

    def test_legacy_fields(self):
        """Test nft_editions and nft_price stand in for the newer fields."""
        economics = derive_economics(
            Submission(goal=Decimal("100"), nft_editions=20, nft_price=Decimal("7"))
        )
        assert economics.max_editions == 20
        assert economics.price_per_edition == Decimal("7")

    def test_defaults(self):
        """Test a bare submission gets the default goal and edition count."""
        economics = derive_economics(Submission())
        assert economics.goal == Decimal("100")
        assert economics.max_editions == 100
        assert economics.price_per_edition == Decimal("1.00")

    def test_large_goal_sets_edition_count(self):
        """Test copies default to the whole-dollar goal when above 100."""
        economics = derive_economics(Submission(goal=Decimal("250")))
        assert economics.max_editions == 250
        assert economics.price_per_edition == Decimal("1.00")


class TestCampaignProvisioner:
    """Tests for CampaignProvisioner.provision."""

    def make_provisioner(self, session_factory, registry, settings, submitter, notifier=None):
        return CampaignProvisioner(
            session_factory=session_factory,
            registry=registry,
            submitter_factory=lambda chain_id: submitter,
            contracts_factory=lambda chain_id: make_contracts(5),
            notifier=notifier or make_notifier(),
            settings=settings,
        )

    @pytest.mark.asyncio
    async def test_provision_persists_binding(self, session_factory, registry, settings):
        """Test a confirmed create stores the campaign id and flips status."""
        submission_id = await seed_submission(session_factory)
        submitter = make_submitter(
            SubmitResult(
                tx_hash=TX_HASH,
                status=SubmissionStatus.CONFIRMED,
                predicted_id=5,
                signed_tx_hash=TX_HASH,
            )
        )
        notifier = make_notifier()
        provisioner = self.make_provisioner(
            session_factory, registry, settings, submitter, notifier
        )

        result = await provisioner.provision(submission_id)

        assert result.campaign_id == 5
        assert result.tx_hash == TX_HASH
        assert result.contract_address == V6_ADDRESS
        assert result.chain_id == 1043
        assert result.pending is False
        assert result.notification_sent is True

        stored = await load_submission(session_factory, submission_id)
        assert stored.status == "minted"
        assert stored.campaign_id == 5
        assert stored.tx_hash == TX_HASH
        assert stored.contract_version == "v6"
        assert stored.num_copies == 100
        assert stored.price_per_copy == Decimal("10.00")

        call = submitter.submit.await_args.args[0]
        assert call.function_name == "createCampaign"
        # category, uri, goal, editions, price, fee, beneficiary
        assert call.args[1] == "ipfs://QmMeta"
        assert call.args[2] == 1000 * 20 * 10**18
        assert call.args[3] == 100
        assert call.args[4] == 10 * 20 * 10**18
        assert call.args[6] == CREATOR_WALLET

        assert notifier.send.await_args.args[0] == "creator@example.com"
        assert notifier.send.await_args.args[1] == NotificationKind.CAMPAIGN_APPROVED

    @pytest.mark.asyncio
    async def test_provision_is_idempotent(self, session_factory, registry, settings):
        """Test a second provision returns the stored result without chain calls."""
        submission_id = await seed_submission(session_factory)
        submitter = make_submitter(
            SubmitResult(tx_hash=TX_HASH, status=SubmissionStatus.CONFIRMED, predicted_id=5)
        )
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        first = await provisioner.provision(submission_id)
        second = await provisioner.provision(submission_id)

        assert submitter.submit.await_count == 1
        assert second.already_provisioned is True
        assert second.campaign_id == first.campaign_id
        assert second.tx_hash == first.tx_hash

    @pytest.mark.asyncio
    async def test_pending_stores_signed_hash(self, session_factory, registry, settings):
        """Test an already-known broadcast persists the locally signed hash."""
        submission_id = await seed_submission(session_factory)
        submitter = make_submitter(
            SubmitResult(
                tx_hash=PENDING_TX_PLACEHOLDER,
                status=SubmissionStatus.PENDING,
                predicted_id=9,
                signed_tx_hash=TX_HASH,
            )
        )
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        result = await provisioner.provision(submission_id)

        assert result.pending is True
        assert result.tx_hash == PENDING_TX_PLACEHOLDER
        stored = await load_submission(session_factory, submission_id)
        assert stored.tx_hash == TX_HASH
        assert stored.campaign_id == 9

    @pytest.mark.asyncio
    async def test_unknown_campaign_id_keeps_status(self, session_factory, registry, settings):
        """Test a failed id prediction records the tx but leaves status alone."""
        submission_id = await seed_submission(session_factory)
        submitter = make_submitter(
            SubmitResult(tx_hash=TX_HASH, status=SubmissionStatus.CONFIRMED)
        )
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        result = await provisioner.provision(submission_id)

        assert result.campaign_id is None
        stored = await load_submission(session_factory, submission_id)
        assert stored.status == "approved"
        assert stored.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_missing_wallet_falls_back_to_signer(self, session_factory, registry, settings):
        """Test the signer address is the beneficiary of last resort."""
        submission_id = await seed_submission(
            session_factory, creator_wallet=None, creator_email=None
        )
        submitter = make_submitter(
            SubmitResult(tx_hash=TX_HASH, status=SubmissionStatus.CONFIRMED, predicted_id=1)
        )
        notifier = make_notifier()
        provisioner = self.make_provisioner(
            session_factory, registry, settings, submitter, notifier
        )

        result = await provisioner.provision(submission_id)

        assert submitter.submit.await_args.args[0].args[6] == TEST_ADDRESS
        assert result.notification_sent is False
        notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_submission(self, session_factory, registry, settings):
        """Test an unknown id raises NotFoundError."""
        provisioner = self.make_provisioner(
            session_factory, registry, settings, make_submitter(None)
        )
        with pytest.raises(NotFoundError):
            await provisioner.provision(404)

    @pytest.mark.asyncio
    async def test_rejected_submission(self, session_factory, registry, settings):
        """Test rejected submissions are never provisioned."""
        submission_id = await seed_submission(session_factory, status="rejected")
        submitter = make_submitter(None)
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        with pytest.raises(ValidationError):
            await provisioner.provision(submission_id)
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_metadata_uri(self, session_factory, registry, settings):
        """Test a submission without metadata is rejected before any chain call."""
        submission_id = await seed_submission(session_factory, metadata_uri="  ")
        submitter = make_submitter(None)
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        with pytest.raises(ValidationError, match="metadata"):
            await provisioner.provision(submission_id)
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_signer_key(self, session_factory, registry, settings):
        """Test an unconfigured relayer key surfaces as a validation error."""
        submission_id = await seed_submission(session_factory)

        def no_key(chain_id):
            raise ValueError("No private key configured for relayer signer")

        provisioner = CampaignProvisioner(
            session_factory=session_factory,
            registry=registry,
            submitter_factory=no_key,
            contracts_factory=lambda chain_id: make_contracts(),
            notifier=make_notifier(),
            settings=settings,
        )
        with pytest.raises(ValidationError, match="private key"):
            await provisioner.provision(submission_id)

    @pytest.mark.asyncio
    async def test_fatal_chain_error_leaves_row(self, session_factory, registry, settings):
        """Test a failed create propagates and nothing is persisted."""
        submission_id = await seed_submission(session_factory)
        submitter = MagicMock()
        submitter.address = TEST_ADDRESS
        submitter.submit = AsyncMock(side_effect=FatalChainError("execution reverted"))
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        with pytest.raises(FatalChainError):
            await provisioner.provision(submission_id)

        stored = await load_submission(session_factory, submission_id)
        assert stored.status == "approved"
        assert stored.campaign_id is None

    @pytest.mark.asyncio
    async def test_concurrent_provision_creates_one_campaign(
        self, session_factory, registry, settings
    ):
        """Test a double submit broadcasts createCampaign exactly once."""
        submission_id = await seed_submission(session_factory)

        async def slow_submit(call, config=None, predict_id=None):
            await asyncio.sleep(0.05)
            return SubmitResult(
                tx_hash=TX_HASH, status=SubmissionStatus.CONFIRMED, predicted_id=5
            )

        submitter = MagicMock()
        submitter.address = TEST_ADDRESS
        submitter.submit = AsyncMock(side_effect=slow_submit)
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        first, second = await asyncio.gather(
            provisioner.provision(submission_id),
            provisioner.provision(submission_id),
        )

        assert submitter.submit.await_count == 1
        assert sorted([first.already_provisioned, second.already_provisioned]) == [
            False,
            True,
        ]
        assert first.campaign_id == second.campaign_id == 5

    @pytest.mark.asyncio
    async def test_claimed_row_is_not_provisioned_again(
        self, session_factory, registry, settings
    ):
        """Test a row claimed by another worker is refused before any chain call."""
        submission_id = await seed_submission(session_factory, status="provisioning")
        submitter = make_submitter(None)
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        with pytest.raises(ValidationError, match="already being provisioned"):
            await provisioner.provision(submission_id)
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fatal_chain_error_allows_retry(self, session_factory, registry, settings):
        """Test the claim is released so a later attempt can succeed."""
        submission_id = await seed_submission(session_factory)
        submitter = MagicMock()
        submitter.address = TEST_ADDRESS
        submitter.submit = AsyncMock(
            side_effect=[
                FatalChainError("insufficient funds for gas"),
                SubmitResult(
                    tx_hash=TX_HASH, status=SubmissionStatus.CONFIRMED, predicted_id=5
                ),
            ]
        )
        provisioner = self.make_provisioner(session_factory, registry, settings, submitter)

        with pytest.raises(FatalChainError):
            await provisioner.provision(submission_id)
        result = await provisioner.provision(submission_id)

        assert result.campaign_id == 5
        stored = await load_submission(session_factory, submission_id)
        assert stored.status == "minted"


class TestSubmissionClaim:
    """Tests for the provisioning claim on SubmissionRepository."""

    @pytest.mark.asyncio
    async def test_only_one_claim_wins(self, session_factory):
        """Test a second claim on the same row is refused."""
        submission_id = await seed_submission(session_factory)

        async with session_factory() as session:
            repo = SubmissionRepository(session)
            first = await repo.claim_for_provisioning(submission_id)
            second = await repo.claim_for_provisioning(submission_id)
            await session.commit()

        assert first == "approved"
        assert second is None
        stored = await load_submission(session_factory, submission_id)
        assert stored.status == "provisioning"

    @pytest.mark.asyncio
    async def test_release_restores_status(self, session_factory):
        """Test releasing a claim writes the resting status and extra columns."""
        submission_id = await seed_submission(session_factory)

        async with session_factory() as session:
            repo = SubmissionRepository(session)
            await repo.claim_for_provisioning(submission_id)
            released = await repo.release_claim(
                submission_id, "approved", {"tx_hash": TX_HASH}
            )
            await session.commit()

        assert released == 1
        stored = await load_submission(session_factory, submission_id)
        assert stored.status == "approved"
        assert stored.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_rejected_row_cannot_be_claimed(self, session_factory):
        """Test only pending and approved rows are claimable."""
        submission_id = await seed_submission(session_factory, status="rejected")

        async with session_factory() as session:
            claimed = await SubmissionRepository(session).claim_for_provisioning(
                submission_id
            )

        assert claimed is None
