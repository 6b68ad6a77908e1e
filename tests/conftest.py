"""
Shared pytest fixtures for the indexer test suite.

This module provides fixtures that are automatically available to all test files:
- Temporary test databases (via the config system's ``use_test_database``)
- An in-memory ledger (``FakeEventSource``) and the components built on it
- A FastAPI TestClient wired to a service backed by the fake ledger
"""

import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tests.fakes import FakeEventSource
from yibi_indexer.config import (
    ChainSettings,
    IndexerConfig,
    SyncSettings,
    use_test_database,
)
from yibi_indexer.db import schema
from yibi_indexer.indexer.projector import EventProjector
from yibi_indexer.indexer.service import IndexerService

# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """
    Create a temporary database file for testing.

    Each test function gets its own database file; the config system's
    ``use_test_database`` points every repository at it.

    Yields:
        Path to temporary database file
    """
    temp_dir = tempfile.mkdtemp()
    temp_db = Path(temp_dir) / "test_indexer.db"

    with use_test_database(temp_db):
        yield temp_db

    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture(scope="function")
def test_db(temp_db_path: Path) -> Generator[None, None, None]:
    """Initialize the temporary database with the production schema."""
    schema.init_database()
    yield


# ============================================================================
# LEDGER AND INDEXER FIXTURES
# ============================================================================


@pytest.fixture
def fake_source() -> FakeEventSource:
    """Empty in-memory ledger at height 0."""
    return FakeEventSource()


@pytest.fixture
def projector(fake_source: FakeEventSource) -> EventProjector:
    return EventProjector(fake_source)


@pytest.fixture
def sync_settings() -> SyncSettings:
    """Backfill from block 100 in batches of 10 with no inter-batch delay."""
    return SyncSettings(start_block=100, batch_size=10, batch_delay_seconds=0.0)


@pytest.fixture
def indexer_config(sync_settings: SyncSettings) -> IndexerConfig:
    """Configuration with realtime and backfill both enabled."""
    return IndexerConfig(
        chain=ChainSettings(
            rpc_url="http://127.0.0.1:8545",
            ws_url="ws://127.0.0.1:8546",
            contract_address="0x3333333333333333333333333333333333333333",
        ),
        sync=sync_settings,
    )


@pytest.fixture
def service(indexer_config: IndexerConfig, fake_source: FakeEventSource) -> IndexerService:
    return IndexerService(indexer_config, source=fake_source)


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def test_client(test_db, service: IndexerService) -> Generator[TestClient, None, None]:
    """
    TestClient for an app whose lifespan uses the fake-ledger service.

    The indexer is not started automatically; tests drive it explicitly.
    """
    from yibi_indexer.api.server import create_app

    app = create_app(service, start_indexer=False)
    with TestClient(app) as client:
        yield client
