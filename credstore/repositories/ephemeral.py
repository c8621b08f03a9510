"""Repository for the ephemeral_tokens table."""

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
)
from credstore.expiry import is_expired
from credstore.models.ephemeral import RedeemedToken

logger = logging.getLogger(__name__)


class EphemeralTokenRepository:
    """Short-lived opaque tokens carrying an arbitrary payload.

    ``redeem`` is a raw fetch and never deletes: liveness is enforced by the
    caller (via ``horizon`` or ``is_expired``) and by periodic ``sweep``.
    """

    def __init__(self, pool: asyncpg.Pool, *, max_issue_attempts: int = 3) -> None:
        self.pool = pool
        self.max_issue_attempts = max_issue_attempts

    async def issue(self, payload: bytes, created_at: datetime, expires_at: datetime) -> str:
        """Store ``payload`` under a fresh token and return its text form."""
        if expires_at <= created_at:
            raise InvalidExpiry("expires_at must be later than created_at")

        async with self.pool.acquire() as conn:
            for attempt in range(1, self.max_issue_attempts + 1):
                raw = codec.generate()
                try:
                    await conn.execute(
                        """
                        INSERT INTO ephemeral_tokens (id, created_at, expires_at, payload)
                        VALUES ($1, $2, $3, $4)
                        """,
                        raw,
                        created_at,
                        expires_at,
                        payload,
                    )
                except asyncpg.UniqueViolationError:
                    logger.warning(
                        f"Ephemeral token collision ({attempt}/{self.max_issue_attempts})"
                    )
                    continue
                logger.debug(f"Issued ephemeral token {codec.fingerprint(raw)}")
                return codec.encode(raw)

        raise TokenSpaceExhausted(
            f"No unique ephemeral token after {self.max_issue_attempts} attempts"
        )

    async def redeem(
        self, text: str, *, horizon: datetime | None = None
    ) -> RedeemedToken | None:
        """Return the payload stored under ``text``, or None if not found.

        Malformed text is reported as not found. With ``horizon`` set, a token
        that expired before it is also reported as not found.
        """
        try:
            raw = codec.decode(text)
        except InvalidTokenFormat:
            return None

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT payload, expires_at FROM ephemeral_tokens WHERE id = $1",
                raw,
            )
        if not row:
            return None
        if horizon is not None and is_expired(row["expires_at"], horizon):
            return None
        return RedeemedToken(payload=bytes(row["payload"]), expires_at=row["expires_at"])

    async def require(self, text: str, *, horizon: datetime | None = None) -> RedeemedToken:
        """Like ``redeem`` but raises NotFound instead of returning None."""
        redeemed = await self.redeem(text, horizon=horizon)
        if redeemed is None:
            raise NotFound("Ephemeral token not found")
        return redeemed

    async def sweep(self, horizon: datetime) -> int:
        """Delete every token that expired before ``horizon``. Returns the count."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM ephemeral_tokens WHERE expires_at < $1",
                horizon,
            )
        removed = int(result.split()[-1])
        if removed:
            logger.info(f"Swept {removed} expired ephemeral token(s)")
        return removed
