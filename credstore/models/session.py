"""Data model for the persistent (session/API/minibot) tokens table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SessionTokenInfo:
    """Token metadata. The secret itself is never read back."""

    id: int
    user_id: int
    created_at: datetime
    expires_at: datetime
    last_used_at: datetime | None = None
