"""Pytest configuration and fixtures."""

import pytest
import pytest_asyncio
from eth_utils import to_checksum_address
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

# Hardhat account #0; never holds real funds
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

V6_ADDRESS = to_checksum_address("0xae54e4e8a75a81780361570c17b8660cead27053")
V7_ADDRESS = to_checksum_address("0xd6aee73e3bb3c3ff149eb1198bc2069d2e37eb7e")


@pytest.fixture(scope="function")
def settings():
    """Create settings instance for testing."""
    from pledge.core.config import Settings

    return Settings(
        environment="testing",
        secret_key="test-secret-key",
        relayer_private_key=TEST_PRIVATE_KEY,
        purchaser_private_key=TEST_PRIVATE_KEY,
        tx_backoff_base_seconds=0.0,
        email_api_key=None,
    )


@pytest.fixture(scope="function")
def registry(settings):
    """Chain registry built from the default chains and contracts."""
    from pledge.infrastructure.blockchain.registry import ChainRegistry

    return ChainRegistry.from_settings(settings)


@pytest_asyncio.fixture(scope="function")
async def session_factory():
    """In-memory SQLite database shared by every session of one test."""
    from pledge.models import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path):
    """File-backed SQLite where each session gets its own connection."""
    from pledge.models import Base

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'pledge.db'}",
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest.fixture(scope="function")
def app():
    """Create FastAPI application for testing."""
    from pledge.main import create_app

    application = create_app()
    yield application
    application.dependency_overrides.clear()


@pytest.fixture(scope="function")
def client(app):
    """Create test client."""
    with TestClient(app) as client:
        yield client
