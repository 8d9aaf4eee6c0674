"""Create pledge cache tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Campaign submissions (off-chain mirror of on-chain campaigns)
    op.create_table(
        "submissions",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("campaign_id", sa.BigInteger(), nullable=True),
        sa.Column("chain_id", sa.BigInteger(), nullable=True),
        sa.Column("contract_address", sa.String(42), nullable=True),
        sa.Column("contract_version", sa.String(10), nullable=True),
        sa.Column("tx_hash", sa.String(66), nullable=True),
        sa.Column("title", sa.String(200), nullable=False, server_default=""),
        sa.Column("story", sa.Text(), nullable=True),
        sa.Column("image_uri", sa.Text(), nullable=True),
        sa.Column("metadata_uri", sa.Text(), nullable=True),
        sa.Column("category", sa.String(50), nullable=False, server_default="general"),
        sa.Column("goal", sa.Numeric(20, 2), nullable=True),
        sa.Column("num_copies", sa.Integer(), nullable=True),
        sa.Column("nft_editions", sa.Integer(), nullable=True),
        sa.Column("price_per_copy", sa.Numeric(20, 2), nullable=True),
        sa.Column("nft_price", sa.Numeric(20, 2), nullable=True),
        sa.Column("sold_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_raised", sa.Numeric(20, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("creator_wallet", sa.String(42), nullable=True),
        sa.Column("creator_email", sa.String(320), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "chain_id", "contract_address", "campaign_id", name="uq_submission_campaign"
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'provisioning', 'minted', 'rejected')",
            name="ck_submission_status",
        ),
    )
    op.create_index("ix_submissions_campaign_id", "submissions", ["campaign_id"])
    op.create_index("ix_submissions_status", "submissions", ["status"])

    # Purchases, one row per confirmed transaction
    op.create_table(
        "purchases",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False),
        sa.Column("campaign_id", sa.BigInteger(), nullable=False),
        sa.Column("chain_id", sa.BigInteger(), nullable=False),
        sa.Column("contract_address", sa.String(42), nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("amount_usd", sa.Numeric(20, 2), nullable=False),
        sa.Column("amount_native", sa.Numeric(78, 0), nullable=False),
        sa.Column("tip_usd", sa.Numeric(20, 2), nullable=False, server_default="0"),
        sa.Column("tip_native", sa.Numeric(78, 0), nullable=False, server_default="0"),
        sa.Column(
            "minted_token_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default="[]",
        ),
        sa.Column("buyer_email", sa.String(320), nullable=True),
        sa.Column("donor_note", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tx_hash", name="uq_purchases_tx_hash"),
    )
    op.create_index("ix_purchases_campaign_id", "purchases", ["campaign_id"])
    op.create_index("ix_purchases_wallet_address", "purchases", ["wallet_address"])

    # Minted token cache
    op.create_table(
        "tokens",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("token_id", sa.BigInteger(), nullable=False),
        sa.Column("chain_id", sa.BigInteger(), nullable=False),
        sa.Column("contract_address", sa.String(42), nullable=False),
        sa.Column("campaign_id", sa.BigInteger(), nullable=False),
        sa.Column("owner_wallet", sa.String(42), nullable=False),
        sa.Column("edition_number", sa.Integer(), nullable=True),
        sa.Column("is_frozen", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_soulbound", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("mint_tx_hash", sa.String(66), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "token_id", "chain_id", "contract_address", name="uq_token_contract"
        ),
    )
    op.create_index("ix_tokens_campaign_id", "tokens", ["campaign_id"])
    op.create_index("ix_tokens_owner_wallet", "tokens", ["owner_wallet"])

    # Append-only purchase event log
    op.create_table(
        "events",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=True),
        sa.Column("campaign_id", sa.BigInteger(), nullable=True),
        sa.Column("chain_id", sa.BigInteger(), nullable=True),
        sa.Column("wallet_address", sa.String(42), nullable=True),
        sa.Column("amount_usd", sa.Numeric(20, 2), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_tx_hash", "events", ["tx_hash"])


def downgrade() -> None:
    op.drop_index("ix_events_tx_hash", table_name="events")
    op.drop_index("ix_events_event_type", table_name="events")
    op.drop_table("events")

    op.drop_index("ix_tokens_owner_wallet", table_name="tokens")
    op.drop_index("ix_tokens_campaign_id", table_name="tokens")
    op.drop_table("tokens")

    op.drop_index("ix_purchases_wallet_address", table_name="purchases")
    op.drop_index("ix_purchases_campaign_id", table_name="purchases")
    op.drop_table("purchases")

    op.drop_index("ix_submissions_status", table_name="submissions")
    op.drop_index("ix_submissions_campaign_id", table_name="submissions")
    op.drop_table("submissions")
