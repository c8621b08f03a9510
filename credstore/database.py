"""PostgreSQL connection management for the credential store.

All correctness guarantees (token uniqueness, atomic scope replacement,
``last_used_at`` updates) come from PostgreSQL transactions; the pool is the
only shared resource.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import asyncpg

from credstore.core.config import StoreSettings

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).resolve().parent / "schema"


@dataclass
class PoolConfig:
    """Database pool configuration with sensible defaults."""

    min_size: int = 1
    max_size: int = 5
    timeout: float = 5.0
    command_timeout: float = 15.0
    max_inactive_connection_lifetime: float = 300.0
    max_retries: int = 3
    retry_delay: float = 1.0

    @classmethod
    def from_settings(cls, settings: StoreSettings, **overrides: Any) -> PoolConfig:
        values: dict[str, Any] = {
            "min_size": settings.pool_min_size,
            "max_size": settings.pool_max_size,
        }
        values.update(overrides)
        return cls(**values)


class DatabaseManager:
    """Manages the asyncpg pool lifecycle with retry on connect."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self._pool: asyncpg.Pool | None = None

    def _pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        return {
            "dsn": self.database_url,
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "max_inactive_connection_lifetime": cfg.max_inactive_connection_lifetime,
        }

    async def connect(self) -> asyncpg.Pool:
        """Initialize the connection pool, retrying with exponential backoff."""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return self._pool

        cfg = self.config
        for attempt in range(1, cfg.max_retries + 1):
            try:
                pool = await asyncpg.create_pool(**self._pool_kwargs())
                async with pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")
                self._pool = pool
                logger.info(f"Database pool created (size={cfg.min_size}-{cfg.max_size})")
                return pool
            except (OSError, asyncpg.PostgresError) as e:
                if attempt >= cfg.max_retries:
                    logger.exception(
                        f"Database connection failed after {cfg.max_retries} attempts: "
                        f"{type(e).__name__}: {e}"
                    )
                    raise
                delay = cfg.retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Database connection attempt {attempt}/{cfg.max_retries} failed: "
                    f"{type(e).__name__}: {e}, retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

        raise RuntimeError("unreachable")

    async def disconnect(self) -> None:
        """Close database connection pool."""
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    async def check_health(self) -> bool:
        """Test if pool can actually execute a query."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
            logger.warning(f"Database health check failed: {type(e).__name__}: {e}")
            return False

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the database connection pool. Raises if not initialized."""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool


async def apply_schema(conn: asyncpg.Connection) -> None:
    """Create the credential store tables on a fresh database.

    Versioned upgrades belong to the external migration runner; this only
    bootstraps an empty database for tests and local development.
    """
    for sql_path in sorted(SCHEMA_DIR.glob("*.sql")):
        logger.info("Applying schema file: %s", sql_path.name)
        async with conn.transaction():
            await conn.execute(sql_path.read_text(encoding="utf-8"))
