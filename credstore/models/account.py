"""Data models for accounts, users, identities and bot delegations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    """Local user, identified by the Twitch account they log in with."""

    id: int
    account_id: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class Identity:
    """Federated (OpenID-style) identity linked to a user."""

    user_id: int
    provider: str
    subject: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class BotDelegation:
    user_id: int
    bot_account_id: str
    updated_at: datetime | None = None
