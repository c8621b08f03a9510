"""Repository for twitch_access_tokens, twitch_access_token_scopes and
twitch_refresh_tokens."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

import asyncpg

from credstore.errors import NoRefreshToken, UnknownAccount
from credstore.models.oauth import AccessToken
from credstore.repositories.account import is_valid_text, upsert_account_on
from credstore.repositories.scope import ScopeRepository

logger = logging.getLogger(__name__)


class OAuthCredentialRepository:
    """Latest Twitch access/refresh token pair per account.

    Each write replaces the previous value wholesale. The store never talks to
    Twitch; refreshing is the caller's job (see services.rotation).
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Writes ====================

    async def _write_access_token(
        self,
        conn: asyncpg.Connection,
        account_id: str,
        token: str,
        expires_at: datetime | None,
        scopes: Iterable[str],
    ) -> None:
        # Must run inside a transaction: token row and scope links change together.
        if not is_valid_text(token):
            raise ValueError("access token must be non-empty text")
        await upsert_account_on(conn, account_id)
        scope_ids = await ScopeRepository.resolve_ids(conn, scopes)
        await conn.execute(
            """
            INSERT INTO twitch_access_tokens (account_id, token, expires_at)
            VALUES ($1, $2, $3)
            ON CONFLICT (account_id) DO UPDATE SET
                token      = EXCLUDED.token,
                expires_at = EXCLUDED.expires_at,
                updated_at = NOW()
            """,
            account_id,
            token,
            expires_at,
        )
        await conn.execute(
            "DELETE FROM twitch_access_token_scopes WHERE account_id = $1",
            account_id,
        )
        if scope_ids:
            await conn.execute(
                """
                INSERT INTO twitch_access_token_scopes (account_id, scope_id)
                SELECT $1, unnest($2::int[])
                """,
                account_id,
                scope_ids,
            )

    async def _write_refresh_token(
        self, conn: asyncpg.Connection, account_id: str, token: str
    ) -> None:
        if not is_valid_text(token):
            raise ValueError("refresh token must be non-empty text")
        await upsert_account_on(conn, account_id)
        await conn.execute(
            """
            INSERT INTO twitch_refresh_tokens (account_id, token)
            VALUES ($1, $2)
            ON CONFLICT (account_id) DO UPDATE SET
                token      = EXCLUDED.token,
                updated_at = NOW()
            """,
            account_id,
            token,
        )

    async def store_access_token(
        self,
        account_id: str,
        token: str,
        expires_at: datetime | None,
        scopes: Iterable[str],
    ) -> None:
        """Replace the account's access token and scope set atomically.

        Raises UnknownScope (and writes nothing) if any scope is unregistered.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._write_access_token(conn, account_id, token, expires_at, scopes)
        logger.info(f"Stored access token for twitch:{account_id}")

    async def store_refresh_token(self, account_id: str, token: str) -> None:
        """Replace the account's refresh token. Refresh tokens do not expire."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._write_refresh_token(conn, account_id, token)
        logger.info(f"Stored refresh token for twitch:{account_id}")

    async def store_credentials(
        self,
        account_id: str,
        access_token: str,
        expires_at: datetime | None,
        scopes: Iterable[str],
        refresh_token: str | None = None,
    ) -> None:
        """Record the result of a code exchange or refresh in one transaction.

        The refresh token is kept as-is when ``refresh_token`` is None.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._write_access_token(
                    conn, account_id, access_token, expires_at, scopes
                )
                if refresh_token is not None:
                    await self._write_refresh_token(conn, account_id, refresh_token)
        logger.info(f"Stored OAuth credentials for twitch:{account_id}")

    async def delete_credentials(self, account_id: str) -> bool:
        """Forget both tokens of an account. Returns True if anything was removed."""
        if not is_valid_text(account_id):
            return False
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                access = await conn.execute(
                    "DELETE FROM twitch_access_tokens WHERE account_id = $1", account_id
                )
                refresh = await conn.execute(
                    "DELETE FROM twitch_refresh_tokens WHERE account_id = $1", account_id
                )
        removed = access == "DELETE 1" or refresh == "DELETE 1"
        if removed:
            logger.info(f"Deleted OAuth credentials for twitch:{account_id}")
        return removed

    # ==================== Reads ====================

    async def get_access_token(self, account_id: str) -> AccessToken | None:
        """Return the current access token with its scopes.

        A single statement, so the token and its scope set come from the
        same snapshot.
        """
        if not is_valid_text(account_id):
            return None
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT t.account_id, t.token, t.expires_at,
                       COALESCE(
                           array_agg(s.name) FILTER (WHERE s.name IS NOT NULL),
                           '{}'::text[]
                       ) AS scopes
                FROM twitch_access_tokens t
                LEFT JOIN twitch_access_token_scopes ts ON ts.account_id = t.account_id
                LEFT JOIN oauth_scopes s ON s.id = ts.scope_id
                WHERE t.account_id = $1
                GROUP BY t.account_id, t.token, t.expires_at
                """,
                account_id,
            )
            if not row:
                return None
            return AccessToken(
                account_id=row["account_id"],
                token=row["token"],
                expires_at=row["expires_at"],
                scopes=frozenset(row["scopes"]),
            )

    async def get_refresh_token(self, account_id: str) -> str | None:
        if not is_valid_text(account_id):
            return None
        async with self.pool.acquire() as conn:
            return await conn.fetchval(
                "SELECT token FROM twitch_refresh_tokens WHERE account_id = $1",
                account_id,
            )

    async def require_refresh_token(self, account_id: str) -> str:
        """Return the refresh token needed to rotate an account's credentials.

        Raises UnknownAccount for an unregistered account and NoRefreshToken
        when the account exists but has no refresh token.
        """
        if not is_valid_text(account_id):
            raise UnknownAccount(account_id)
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT a.id, r.token
                FROM twitch_accounts a
                LEFT JOIN twitch_refresh_tokens r ON r.account_id = a.id
                WHERE a.id = $1
                """,
                account_id,
            )
        if not row:
            raise UnknownAccount(account_id)
        if row["token"] is None:
            raise NoRefreshToken(account_id)
        return row["token"]
