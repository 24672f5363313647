"""Shared fixtures and helpers for tests."""

import logging
import warnings
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

from alembic import command
from alembic.config import Config
from filehub.core.hub import FileHub
from filehub.db import (
    InMemoryBlobStore,
    InMemoryDeviceStore,
    InMemoryFolderStore,
    InMemoryRemoteService,
    InMemorySyncMap,
)
from filehub.db.migrations import SCRIPT_LOCATION
from filehub.models import Principal
from filehub.wiring import build_hub

logger = logging.getLogger(__name__)

_REPO_ROOT = Path(__file__).parent.parent

KIB = 1024
MIB = 1024 * KIB
INLINE_THRESHOLD = 1 * MIB
LOCAL_CEILING = 5 * MIB


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# PostgresTestBase: helpers for integration tests that need a database
# ---------------------------------------------------------------------------


class PostgresTestBase:
    IMAGE = "postgres:16-alpine"

    @staticmethod
    def create_container() -> DockerContainer:
        return (
            DockerContainer(PostgresTestBase.IMAGE)
            .with_exposed_ports(5432)
            .with_env("POSTGRES_PASSWORD", "postgres")
        )

    @staticmethod
    def get_alembic_config() -> Config:
        cfg = Config(str(_REPO_ROOT / "alembic.ini"))
        cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
        return cfg

    @staticmethod
    def run_migrations(connection_url: str) -> None:
        cfg = PostgresTestBase.get_alembic_config()
        cfg.set_main_option("sqlalchemy.url", connection_url)
        command.upgrade(cfg, "head")

    @staticmethod
    def cleanup_migrations(connection_url: str) -> None:
        cfg = PostgresTestBase.get_alembic_config()
        cfg.set_main_option("sqlalchemy.url", connection_url)
        command.downgrade(cfg, "base")

    @staticmethod
    def wait_for_postgres(container: DockerContainer) -> None:
        # The official image restarts once after init; wait for the second ready line.
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DeprecationWarning)
            wait_for_logs(
                container,
                r"database system is ready to accept connections[\s\S]*database system is ready to accept connections",
                timeout=60,
            )


# ---------------------------------------------------------------------------
# Shared unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def remote() -> InMemoryRemoteService:
    """In-memory remote with alice signed in and bob registered."""
    service = InMemoryRemoteService()
    alice = service.register_principal("alice@example.com", "Alice")
    service.register_principal("bob@example.com", "Bob")
    service.sign_in(alice)
    return service


@pytest.fixture
def alice(remote: InMemoryRemoteService) -> Principal:
    principal = next(p for p in remote.principals.values() if p.email == "alice@example.com")
    return principal


@pytest.fixture
def bob(remote: InMemoryRemoteService) -> Principal:
    principal = next(p for p in remote.principals.values() if p.email == "bob@example.com")
    return principal


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore(capacity=5 * MIB)


@pytest.fixture
def folder_store() -> InMemoryFolderStore:
    return InMemoryFolderStore()


@pytest.fixture
def device() -> InMemoryDeviceStore:
    return InMemoryDeviceStore()


@pytest.fixture
def sync_map() -> InMemorySyncMap:
    return InMemorySyncMap()


def make_hub(
    remote: InMemoryRemoteService,
    blob_store: InMemoryBlobStore | None = None,
    folder_store: InMemoryFolderStore | None = None,
    device: InMemoryDeviceStore | None = None,
    sync_map: InMemorySyncMap | None = None,
) -> FileHub:
    return build_hub(
        blob_store=blob_store if blob_store is not None else InMemoryBlobStore(capacity=5 * MIB),
        folder_store=folder_store if folder_store is not None else InMemoryFolderStore(),
        device=device if device is not None else InMemoryDeviceStore(),
        sync_map=sync_map if sync_map is not None else InMemorySyncMap(),
        remote=remote,
        inline_threshold=INLINE_THRESHOLD,
        local_ceiling=LOCAL_CEILING,
        debounce=0,
    )


@pytest_asyncio.fixture
async def hub(
    remote: InMemoryRemoteService,
    blob_store: InMemoryBlobStore,
    folder_store: InMemoryFolderStore,
    device: InMemoryDeviceStore,
    sync_map: InMemorySyncMap,
) -> AsyncIterator[FileHub]:
    instance = make_hub(remote, blob_store, folder_store, device, sync_map)
    await instance.load()
    yield instance
    await instance.aclose()
