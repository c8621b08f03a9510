"""Data models for the credential store."""

from .account import BotDelegation, Identity, User
from .ephemeral import RedeemedToken
from .oauth import AccessToken, ExchangeResult
from .session import SessionTokenInfo

__all__ = [
    "AccessToken",
    "BotDelegation",
    "ExchangeResult",
    "Identity",
    "RedeemedToken",
    "SessionTokenInfo",
    "User",
]
