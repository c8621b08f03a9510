"""Data models for stored Twitch OAuth credentials."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class AccessToken:
    """Current access token of an account together with its scope set."""

    account_id: str
    token: str = field(repr=False)
    expires_at: datetime | None
    scopes: frozenset[str] = frozenset()


@dataclass(frozen=True)
class ExchangeResult:
    """Token pair returned by an OAuth code exchange or refresh."""

    access_token: str = field(repr=False)
    expires_at: datetime | None
    scopes: frozenset[str]
    refresh_token: str | None = field(default=None, repr=False)
