"""Credential store facade: every repository over one asyncpg pool."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

import asyncpg

from credstore.core.config import DEFAULT_SCOPES, StoreSettings
from credstore.expiry import utcnow
from credstore.repositories import (
    AccountRepository,
    EphemeralTokenRepository,
    OAuthCredentialRepository,
    ScopeRepository,
    SessionTokenRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    ephemeral: int
    sessions: int


class CredentialStore:
    """Entry point for callers: OAuth front end, API layer and bot runtime."""

    def __init__(self, pool: asyncpg.Pool, settings: StoreSettings | None = None) -> None:
        self.pool = pool
        self.settings = settings
        max_attempts = settings.max_issue_attempts if settings else 3

        self.accounts = AccountRepository(pool)
        self.scopes = ScopeRepository(pool)
        self.oauth = OAuthCredentialRepository(pool)
        self.ephemeral = EphemeralTokenRepository(pool, max_issue_attempts=max_attempts)
        self.sessions = SessionTokenRepository(pool, max_issue_attempts=max_attempts)

    async def bootstrap(self) -> None:
        """Register the default scope vocabulary."""
        await self.scopes.register_scopes(DEFAULT_SCOPES)
        logger.info(f"Scope vocabulary ready ({len(DEFAULT_SCOPES)} default scopes)")

    async def issue_ephemeral(self, payload: bytes, *, now: datetime | None = None) -> str:
        """Issue an ephemeral token with the configured lifetime."""
        if self.settings is None:
            raise RuntimeError("issue_ephemeral requires settings")
        created_at = now or utcnow()
        return await self.ephemeral.issue(
            payload, created_at, created_at + self.settings.ephemeral_lifetime
        )

    async def issue_session(self, user_id: int, *, now: datetime | None = None) -> str:
        """Issue a session token with the configured lifetime."""
        if self.settings is None:
            raise RuntimeError("issue_session requires settings")
        created_at = now or utcnow()
        return await self.sessions.issue(
            user_id, created_at, created_at + self.settings.session_lifetime
        )

    async def sweep_expired(self, horizon: datetime | None = None) -> SweepResult:
        """Purge expired ephemeral and session tokens."""
        horizon = horizon or utcnow()
        result = SweepResult(
            ephemeral=await self.ephemeral.sweep(horizon),
            sessions=await self.sessions.sweep(horizon),
        )
        logger.debug(f"Sweep at {horizon.isoformat()}: {result}")
        return result
