"""Shared fixtures for the credstore test suite.

Unit tests use ``make_pool`` (an asyncpg pool mock). Integration tests use the
``store`` fixture, which provisions a fresh database on a shared PostgreSQL
testcontainer and applies the schema.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Iterator
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import docker
import pytest
from docker.errors import DockerException

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

    from credstore import CredentialStore


def docker_daemon_available() -> bool:
    """True when a Docker daemon answers, not merely when the CLI is installed."""
    try:
        client = docker.from_env()
    except (DockerException, OSError):
        return False
    try:
        return bool(client.ping())
    except (DockerException, OSError):
        return False
    finally:
        client.close()


docker_available = docker_daemon_available()

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# asyncpg mocks
# ---------------------------------------------------------------------------


def make_conn() -> MagicMock:
    """Connection mock with awaitable query methods and a transaction() context."""
    conn = MagicMock()
    conn.execute = AsyncMock(return_value="INSERT 0 1")
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)

    tx = AsyncMock()
    tx.__aenter__ = AsyncMock(return_value=None)
    tx.__aexit__ = AsyncMock(return_value=False)
    conn.transaction = MagicMock(return_value=tx)
    return conn


def make_pool(conn: MagicMock | None = None) -> MagicMock:
    """Pool mock whose acquire() yields ``conn`` (exposed as ``pool._conn``)."""
    conn = conn or make_conn()

    cm = AsyncMock()
    cm.__aenter__ = AsyncMock(return_value=conn)
    cm.__aexit__ = AsyncMock(return_value=False)

    pool = MagicMock()
    pool.acquire.return_value = cm
    pool._conn = conn
    return pool


# ---------------------------------------------------------------------------
# PostgreSQL testcontainer
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """One PostgreSQL server for the whole session; each test gets its own database."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16-alpine", driver=None) as pg:
        yield pg


def _dsn(pg: PostgresContainer, dbname: str) -> str:
    host = pg.get_container_host_ip()
    port = pg.get_exposed_port(5432)
    return f"postgresql://{pg.username}:{pg.password}@{host}:{port}/{dbname}"


@pytest.fixture
async def store(postgres_container: PostgresContainer) -> AsyncIterator[CredentialStore]:
    """CredentialStore on a freshly provisioned database with the default scopes."""
    import asyncpg

    from credstore import CredentialStore, apply_schema

    dbname = f"test_{uuid.uuid4().hex[:12]}"
    admin = await asyncpg.connect(_dsn(postgres_container, postgres_container.dbname))
    try:
        await admin.execute(f'CREATE DATABASE "{dbname}"')
    finally:
        await admin.close()

    pool = await asyncpg.create_pool(_dsn(postgres_container, dbname), min_size=1, max_size=4)
    try:
        async with pool.acquire() as conn:
            await apply_schema(conn)
        credential_store = CredentialStore(pool)
        await credential_store.bootstrap()
        yield credential_store
    finally:
        await pool.close()
