"""
Shared pytest fixtures and configuration for pgkv tests.

This module provides:
- Auto-marking of unit/integration tests by location
- Settings isolation between tests
- Fixtures wiring the in-memory fakes from ``tests._support.fakes`` in place
  of psycopg connections
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from pgkv.settings import reset_settings
from tests._support.fakes import FakeCluster, FakeConnection, FakeServer

# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop cached settings and any PGKV_* variables from the environment."""
    import os

    for name in list(os.environ):
        if name.startswith("PGKV_") and name != "PGKV_TEST_DATABASE_URL":
            monkeypatch.delenv(name)
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# Fakes
# =============================================================================


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def fake_conn(fake_server: FakeServer) -> FakeConnection:
    return FakeConnection(fake_server)


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def admin_db(fake_cluster: FakeCluster) -> Iterator[FakeCluster]:
    """Route every ``AsyncConnection.connect`` to an admin connection on ``fake_cluster``."""
    with patch("psycopg.AsyncConnection.connect", new=AsyncMock(side_effect=fake_cluster.connect)):
        yield fake_cluster


@pytest.fixture
def provisioning(fake_conn: FakeConnection) -> Iterator[SimpleNamespace]:
    """Patch database creation and connecting so ``initialize()`` uses ``fake_conn``."""
    with (
        patch("pgkv.storage.ensure_database", new=AsyncMock(return_value=True)) as ensure_database,
        patch("psycopg.AsyncConnection.connect", new=AsyncMock(return_value=fake_conn)) as connect,
    ):
        yield SimpleNamespace(ensure_database=ensure_database, connect=connect, conn=fake_conn)
