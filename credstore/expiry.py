"""Expiry policy shared by every token store."""

from __future__ import annotations

from datetime import UTC, datetime


def is_expired(expires_at: datetime | None, horizon: datetime) -> bool:
    """Return True iff ``expires_at`` is strictly before ``horizon``.

    A token expiring exactly at the horizon is still valid. ``None`` means the
    credential does not expire.
    """
    if expires_at is None:
        return False
    return expires_at < horizon


def utcnow() -> datetime:
    """Wall-clock horizon for callers that do not supply their own."""
    return datetime.now(UTC)
