"""Repository for the oauth_scopes vocabulary table."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

import asyncpg
from cachetools import TTLCache  # type: ignore[import-untyped]

from credstore.errors import InvalidScopeName, UnknownScope

logger = logging.getLogger(__name__)

# RFC 6749 section 3.3 scope-token: 1*( %x21 / %x23-5B / %x5D-7E )
_SCOPE_TOKEN_RE = re.compile(r"[\x21\x23-\x5b\x5d-\x7e]+")


def validate_scope_name(name: str) -> str:
    if not isinstance(name, str) or not _SCOPE_TOKEN_RE.fullmatch(name):
        raise InvalidScopeName(f"Invalid scope name: {name!r}")
    return name


def parse_scope_list(value: str) -> frozenset[str]:
    """Parse a space-delimited scope string as sent by the OAuth provider."""
    if not value:
        return frozenset()
    return frozenset(validate_scope_name(s) for s in value.split(" "))


def format_scope_list(scopes: Iterable[str]) -> str:
    return " ".join(sorted(scopes))


class ScopeRepository:
    """Append-only registry of scope names that credentials may carry."""

    def __init__(self, pool: asyncpg.Pool, *, cache_ttl: float = 3600.0) -> None:
        self.pool = pool
        # The vocabulary only grows, so a stale read can at worst miss a scope
        # registered by another process within the TTL.
        self._cache: TTLCache = TTLCache(maxsize=1, ttl=cache_ttl)

    async def register_scopes(self, names: Iterable[str]) -> None:
        """Register scope names. Already-registered names are left untouched."""
        names = sorted({validate_scope_name(n) for n in names})
        if not names:
            return
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO oauth_scopes (name)
                SELECT unnest($1::text[])
                ON CONFLICT (name) DO NOTHING
                """,
                names,
            )
        self._cache.clear()
        logger.debug(f"Registered scopes: {', '.join(names)}")

    async def list_scopes(self) -> frozenset[str]:
        """Return the registered vocabulary."""
        scopes = self._cache.get("scopes")
        if scopes is not None:
            return scopes
        async with self.pool.acquire() as conn:
            rows = await conn.fetch("SELECT name FROM oauth_scopes")
        scopes = frozenset(row["name"] for row in rows)
        self._cache["scopes"] = scopes
        return scopes

    @staticmethod
    async def resolve_ids(conn: asyncpg.Connection, names: Iterable[str]) -> list[int]:
        """Map scope names to ids on ``conn``; raise UnknownScope for any gap.

        Runs on the caller's connection so the lookup shares its transaction.
        """
        wanted = set(names)
        if not wanted:
            return []
        rows = await conn.fetch(
            "SELECT id, name FROM oauth_scopes WHERE name = ANY($1::text[])",
            sorted(wanted),
        )
        missing = wanted - {row["name"] for row in rows}
        if missing:
            raise UnknownScope(missing)
        return [row["id"] for row in rows]

    def invalidate_cache(self) -> None:
        self._cache.clear()
