"""Data model for the ephemeral_tokens table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RedeemedToken:
    """Payload and expiry returned by a successful redemption."""

    payload: bytes
    expires_at: datetime
