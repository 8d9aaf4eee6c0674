"""Application configuration management using pydantic-settings."""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChainSettings(BaseModel):
    """Network entry for the chain registry."""

    chain_id: int
    name: str
    rpc_url: str
    backup_rpc_urls: list[str] = []
    native_currency_symbol: str = "ETH"
    native_currency_decimals: int = 18
    usd_per_native: Decimal = Decimal("1")
    is_testnet: bool = False
    explorer_url: str = ""
    confirmations: int = 1
    poa: bool = False


class ContractSettings(BaseModel):
    """Deployed edition contract entry for the chain registry."""

    chain_id: int
    address: str
    version: Literal["v5", "v6", "v7"]
    is_active: bool = False
    is_mintable: bool = True


DEFAULT_CHAINS = [
    ChainSettings(
        chain_id=1043,
        name="BlockDAG",
        rpc_url="https://rpc.awakening.bdagscan.com",
        native_currency_symbol="BDAG",
        usd_per_native=Decimal("0.05"),
        is_testnet=True,
        explorer_url="https://awakening.bdagscan.com",
    ),
    ChainSettings(
        chain_id=11155111,
        name="Sepolia",
        rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
        backup_rpc_urls=["https://rpc.sepolia.org"],
        native_currency_symbol="ETH",
        usd_per_native=Decimal("3100"),
        is_testnet=True,
        explorer_url="https://sepolia.etherscan.io",
    ),
    ChainSettings(
        chain_id=1,
        name="Ethereum",
        rpc_url="https://ethereum-rpc.publicnode.com",
        native_currency_symbol="ETH",
        usd_per_native=Decimal("3100"),
        explorer_url="https://etherscan.io",
        confirmations=2,
    ),
    ChainSettings(
        chain_id=137,
        name="Polygon",
        rpc_url="https://polygon-rpc.com",
        native_currency_symbol="MATIC",
        usd_per_native=Decimal("0.5"),
        explorer_url="https://polygonscan.com",
        poa=True,
    ),
    ChainSettings(
        chain_id=8453,
        name="Base",
        rpc_url="https://mainnet.base.org",
        native_currency_symbol="ETH",
        usd_per_native=Decimal("3100"),
        explorer_url="https://basescan.org",
    ),
]

DEFAULT_CONTRACTS = [
    ContractSettings(
        chain_id=1043,
        address="0x96bB4d907CC6F90E5677df7ad48Cf3ad12915890",
        version="v5",
        is_active=False,
    ),
    ContractSettings(
        chain_id=1043,
        address="0xaE54e4E8A75a81780361570c17b8660CEaD27053",
        version="v6",
        is_active=True,
    ),
    ContractSettings(
        chain_id=11155111,
        address="0xd6aEE73e3bB3c3fF149eB1198bc2069d2E37eB7e",
        version="v7",
        is_active=True,
    ),
]


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="pledge-backend", description="Application name")
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development", description="Runtime environment"
    )
    debug: bool = Field(default=False, description="Debug mode flag")
    secret_key: str = Field(
        default="dev-secret-key-change-in-production",
        description="Secret key for signing",
    )

    # API
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )

    # Database
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, description="PostgreSQL port")
    db_user: str = Field(default="postgres", description="PostgreSQL user")
    db_password: str = Field(default="postgres", description="PostgreSQL password")
    db_name: str = Field(default="pledge", description="PostgreSQL database name")

    # Redis
    redis_host: str = Field(default="localhost", description="Redis host")
    redis_port: int = Field(default=6379, description="Redis port")
    redis_db: int = Field(default=0, description="Redis database number")
    redis_password: str | None = Field(default=None, description="Redis password")

    # JWT Authentication
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        default=30, description="Access token expiration in minutes"
    )

    # Chains and contracts
    chains: list[ChainSettings] = Field(
        default=DEFAULT_CHAINS, description="Registered networks (JSON list)"
    )
    contracts: list[ContractSettings] = Field(
        default=DEFAULT_CONTRACTS, description="Deployed edition contracts (JSON list)"
    )
    default_chain_id: int = Field(
        default=1043, description="Chain used for new campaigns when none is pinned"
    )

    # Signers, one key per writer role
    relayer_private_key: str = Field(
        default="", description="Private key used to create campaigns"
    )
    relayer_address: str = Field(
        default="", description="Fallback beneficiary when a creator has no wallet"
    )
    purchaser_private_key: str = Field(
        default="", description="Private key used to mint editions"
    )

    # Transaction policy
    tx_max_attempts: int = Field(default=5, ge=1, description="Submission attempts")
    tx_gas_escalation_percent: int = Field(
        default=20, description="Gas price bump per retry (percent of base)"
    )
    tx_backoff_base_seconds: float = Field(
        default=2.0, description="Linear backoff unit between retries"
    )
    tx_receipt_timeout: int = Field(
        default=120, description="Seconds to wait for a receipt"
    )
    tx_default_gas_limit: int = Field(
        default=800_000, description="Gas limit for mint and create calls"
    )

    # Campaign provisioning
    campaign_fee_rate_bps: int = Field(
        default=100, description="Platform fee passed to createCampaign (basis points)"
    )
    default_nonprofit_address: str = Field(
        default="0x0000000000000000000000000000000000000000",
        description="Nonprofit payout address for v7 campaigns",
    )
    immediate_payout_enabled: bool = Field(
        default=False, description="v7 immediate payout flag"
    )

    # Purchases
    purchase_price_buffer_bps: int = Field(
        default=100, description="Headroom added to USD-derived unit prices"
    )

    # Metadata
    metadata_fetch_timeout: float = Field(
        default=5.0, description="Timeout for token metadata fetches (seconds)"
    )
    ipfs_gateway_url: str = Field(
        default="https://gateway.pinata.cloud/ipfs/",
        description="Gateway used to resolve ipfs:// URIs",
    )

    # Email
    email_api_url: str = Field(
        default="https://api.resend.com/emails", description="Email delivery endpoint"
    )
    email_api_key: str | None = Field(default=None, description="Email API key")
    email_from: str = Field(
        default="noreply@pledge.example", description="Email sender address"
    )
    site_url: str = Field(
        default="http://localhost:3000", description="Public site used in email links"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="json", description="Log output format"
    )

    # Background jobs
    resync_interval_seconds: float = Field(
        default=900.0, description="Period of the cache/chain resync job"
    )
    resync_apply_on_schedule: bool = Field(
        default=False,
        description="Let the scheduled resync write chain values; otherwise it only diffs",
    )

    @computed_field
    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def database_url_sync(self) -> str:
        """Construct synchronous database URL for migrations."""
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @computed_field
    @property
    def redis_url(self) -> str:
        """Construct Redis URL from components."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
