"""Per-version call layouts for the edition contracts.

Each contract generation returns campaign data in a different tuple shape and
names its mint functions differently. A layout is selected by
``ContractVersion`` and turns raw ABI output into one canonical snapshot.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pledge.infrastructure.blockchain.registry import ContractVersion


@dataclass(frozen=True)
class CampaignSnapshot:
    """Canonical on-chain campaign state, amounts in wei."""

    campaign_id: int
    category: str
    metadata_uri: str
    goal: int
    gross_raised: int
    net_raised: int
    editions_minted: int
    max_editions: int
    price_per_edition: int
    active: bool
    closed: bool
    nonprofit: str | None = None
    submitter: str | None = None
    immediate_payout_enabled: bool | None = None


@dataclass(frozen=True)
class EditionInfo:
    """Edition metadata for one token."""

    token_id: int
    campaign_id: int
    edition_number: int
    total_editions: int


@dataclass(frozen=True)
class CreateCampaignParams:
    """Inputs for createCampaign, already converted to base units."""

    category: str
    base_uri: str
    goal_wei: int
    max_editions: int
    price_wei: int
    beneficiary: str
    fee_rate_bps: int = 100
    nonprofit: str = "0x0000000000000000000000000000000000000000"
    immediate_payout_enabled: bool = False


class CampaignLayout(ABC):
    """Function names and tuple shapes for one contract generation."""

    campaign_getter: str
    campaign_fields: tuple[str, ...]
    mint_function: str
    mint_with_tip_function: str

    def decode_campaign(self, campaign_id: int, raw: Any) -> CampaignSnapshot:
        """Decode the campaign getter output.

        Raises:
            ValueError: If the tuple does not match this layout
        """
        values = tuple(raw)
        if len(values) != len(self.campaign_fields):
            raise ValueError(
                f"{self.campaign_getter} returned {len(values)} fields, "
                f"expected {len(self.campaign_fields)}"
            )
        fields = dict(zip(self.campaign_fields, values))
        return self._snapshot(campaign_id, fields)

    @abstractmethod
    def _snapshot(self, campaign_id: int, fields: dict[str, Any]) -> CampaignSnapshot:
        ...

    @abstractmethod
    def create_campaign_args(self, params: CreateCampaignParams) -> list[Any]:
        ...

    def mint_call(self, campaign_id: int, tip_wei: int) -> tuple[str, list[Any]]:
        """Function name and args for minting one edition."""
        if tip_wei > 0:
            return self.mint_with_tip_function, [campaign_id, tip_wei]
        return self.mint_function, [campaign_id]


class LegacyLayout(CampaignLayout):
    """v5 and v6: getCampaign with ten fields, BDAG mint functions."""

    campaign_getter = "getCampaign"
    campaign_fields = (
        "category",
        "base_uri",
        "goal",
        "gross_raised",
        "net_raised",
        "editions_minted",
        "max_editions",
        "price_per_edition",
        "active",
        "closed",
    )
    mint_function = "mintWithBDAG"
    mint_with_tip_function = "mintWithBDAGAndTip"

    def _snapshot(self, campaign_id: int, fields: dict[str, Any]) -> CampaignSnapshot:
        return CampaignSnapshot(
            campaign_id=campaign_id,
            category=fields["category"],
            metadata_uri=fields["base_uri"],
            goal=int(fields["goal"]),
            gross_raised=int(fields["gross_raised"]),
            net_raised=int(fields["net_raised"]),
            editions_minted=int(fields["editions_minted"]),
            max_editions=int(fields["max_editions"]),
            price_per_edition=int(fields["price_per_edition"]),
            active=bool(fields["active"]),
            closed=bool(fields["closed"]),
        )

    def create_campaign_args(self, params: CreateCampaignParams) -> list[Any]:
        return [
            params.category,
            params.base_uri,
            params.goal_wei,
            params.max_editions,
            params.price_wei,
            params.fee_rate_bps,
            params.beneficiary,
        ]


class V7Layout(CampaignLayout):
    """v7: campaigns() struct with payout fields, mintEdition functions."""

    campaign_getter = "campaigns"
    campaign_fields = (
        "category",
        "base_uri",
        "goal",
        "gross_raised",
        "net_raised",
        "tips_received",
        "editions_minted",
        "max_editions",
        "price_per_edition",
        "nonprofit",
        "submitter",
        "active",
        "closed",
        "refunded",
        "immediate_payout_enabled",
    )
    mint_function = "mintEdition"
    mint_with_tip_function = "mintEditionWithTip"

    def _snapshot(self, campaign_id: int, fields: dict[str, Any]) -> CampaignSnapshot:
        return CampaignSnapshot(
            campaign_id=campaign_id,
            category=fields["category"],
            metadata_uri=fields["base_uri"],
            goal=int(fields["goal"]),
            gross_raised=int(fields["gross_raised"]),
            net_raised=int(fields["net_raised"]),
            editions_minted=int(fields["editions_minted"]),
            max_editions=int(fields["max_editions"]),
            price_per_edition=int(fields["price_per_edition"]),
            active=bool(fields["active"]),
            closed=bool(fields["closed"]),
            nonprofit=fields["nonprofit"],
            submitter=fields["submitter"],
            immediate_payout_enabled=bool(fields["immediate_payout_enabled"]),
        )

    def create_campaign_args(self, params: CreateCampaignParams) -> list[Any]:
        return [
            params.category,
            params.base_uri,
            params.goal_wei,
            params.max_editions,
            params.price_wei,
            params.nonprofit,
            params.beneficiary,
            params.immediate_payout_enabled,
        ]


_LEGACY = LegacyLayout()

LAYOUTS: dict[ContractVersion, CampaignLayout] = {
    ContractVersion.V5: _LEGACY,
    ContractVersion.V6: _LEGACY,
    ContractVersion.V7: V7Layout(),
}


def get_layout(version: ContractVersion) -> CampaignLayout:
    """Select the layout for a contract version."""
    return LAYOUTS[ContractVersion(version)]
