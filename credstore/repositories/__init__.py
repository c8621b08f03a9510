"""Repository layer: the only data-access surface of the credential store."""

from .account import AccountRepository
from .ephemeral import EphemeralTokenRepository
from .oauth import OAuthCredentialRepository
from .scope import ScopeRepository
from .session import SessionTokenRepository

__all__ = [
    "AccountRepository",
    "EphemeralTokenRepository",
    "OAuthCredentialRepository",
    "ScopeRepository",
    "SessionTokenRepository",
]
