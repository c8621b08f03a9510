"""Repository for the minibot_tokens table (persistent session/API tokens)."""

from __future__ import annotations

import logging
from datetime import datetime

import asyncpg

from credstore import codec
from credstore.errors import (
    InvalidExpiry,
    InvalidTokenFormat,
    NotFound,
    TokenSpaceExhausted,
    UnknownUser,
)
from credstore.expiry import is_expired
from credstore.models.account import User
from credstore.models.session import SessionTokenInfo
from credstore.repositories.account import is_valid_user_id

logger = logging.getLogger(__name__)

_INFO_COLUMNS = "id, user_id, created_at, expires_at, last_used_at"


class SessionTokenRepository:
    """Long-lived user tokens with creation, last-use and expiry tracking."""

    def __init__(self, pool: asyncpg.Pool, *, max_issue_attempts: int = 3) -> None:
        self.pool = pool
        self.max_issue_attempts = max_issue_attempts

    async def issue(self, user_id: int, created_at: datetime, expires_at: datetime) -> str:
        """Issue a new token owned by ``user_id`` and return its text form."""
        if expires_at <= created_at:
            raise InvalidExpiry("expires_at must be later than created_at")
        if not is_valid_user_id(user_id):
            raise UnknownUser(user_id)

        async with self.pool.acquire() as conn:
            for attempt in range(1, self.max_issue_attempts + 1):
                raw = codec.generate()
                try:
                    await conn.execute(
                        """
                        INSERT INTO minibot_tokens (user_id, token, created_at, expires_at)
                        VALUES ($1, $2, $3, $4)
                        """,
                        user_id,
                        raw,
                        created_at,
                        expires_at,
                    )
                except asyncpg.ForeignKeyViolationError as e:
                    raise UnknownUser(user_id) from e
                except asyncpg.UniqueViolationError:
                    logger.warning(
                        f"Session token collision ({attempt}/{self.max_issue_attempts})"
                    )
                    continue
                logger.info(f"Issued session token {codec.fingerprint(raw)} for user {user_id}")
                return codec.encode(raw)

        raise TokenSpaceExhausted(
            f"No unique session token after {self.max_issue_attempts} attempts"
        )

    async def validate(self, text: str, now: datetime) -> User | None:
        """Return the owning user of a live token and mark it used at ``now``.

        Malformed, unknown and expired tokens all return None. The row is
        locked for the lookup so ``last_used_at`` never moves backwards.
        """
        try:
            raw = codec.decode(text)
        except InvalidTokenFormat:
            return None

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    SELECT t.id, t.expires_at, u.id AS user_id,
                           u.twitch_id AS account_id, u.created_at AS user_created_at
                    FROM minibot_tokens t JOIN users u ON u.id = t.user_id
                    WHERE t.token = $1
                    FOR UPDATE OF t
                    """,
                    raw,
                )
                if not row or is_expired(row["expires_at"], now):
                    return None
                await conn.execute(
                    """
                    UPDATE minibot_tokens
                    SET last_used_at = GREATEST(COALESCE(last_used_at, $2), $2)
                    WHERE id = $1
                    """,
                    row["id"],
                    now,
                )

        return User(
            id=row["user_id"],
            account_id=row["account_id"],
            created_at=row["user_created_at"],
        )

    async def authenticate(self, text: str, now: datetime) -> User:
        """Like ``validate`` but raises NotFound instead of returning None."""
        user = await self.validate(text, now)
        if user is None:
            raise NotFound("Session token not found")
        return user

    async def revoke(self, text: str) -> bool:
        """Delete a token. Returns False for unknown or malformed tokens."""
        try:
            raw = codec.decode(text)
        except InvalidTokenFormat:
            return False

        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM minibot_tokens WHERE token = $1", raw)
        if result == "DELETE 1":
            logger.info(f"Revoked session token {codec.fingerprint(raw)}")
            return True
        return False

    async def revoke_all(self, user_id: int) -> int:
        """Delete every token of a user. Returns the number removed."""
        if not is_valid_user_id(user_id):
            return 0
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM minibot_tokens WHERE user_id = $1", user_id)
        removed = int(result.split()[-1])
        logger.info(f"Revoked {removed} session token(s) for user {user_id}")
        return removed

    async def list_for_user(self, user_id: int) -> list[SessionTokenInfo]:
        """Return token metadata for a user, oldest first."""
        if not is_valid_user_id(user_id):
            return []
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_INFO_COLUMNS} FROM minibot_tokens WHERE user_id = $1 ORDER BY id",
                user_id,
            )
            return [SessionTokenInfo(**dict(r)) for r in rows]

    async def sweep(self, horizon: datetime) -> int:
        """Delete every token that expired before ``horizon``."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM minibot_tokens WHERE expires_at < $1",
                horizon,
            )
        removed = int(result.split()[-1])
        if removed:
            logger.info(f"Swept {removed} expired session token(s)")
        return removed
