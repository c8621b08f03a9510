"""Credential and token lifecycle store for the Twitch bot service."""

from .database import DatabaseManager, PoolConfig, apply_schema
from .errors import (
    ChallengeMismatch,
    CredentialStoreError,
    DuplicateIdentity,
    InvalidExpiry,
    InvalidScopeName,
    InvalidTokenFormat,
    NoRefreshToken,
    NotFound,
    TokenSpaceExhausted,
    TokenTypeMismatch,
    UnknownAccount,
    UnknownScope,
    UnknownUser,
)
from .store import CredentialStore, SweepResult

__all__ = [
    "ChallengeMismatch",
    "CredentialStore",
    "CredentialStoreError",
    "DatabaseManager",
    "DuplicateIdentity",
    "InvalidExpiry",
    "InvalidScopeName",
    "InvalidTokenFormat",
    "NoRefreshToken",
    "NotFound",
    "PoolConfig",
    "SweepResult",
    "TokenSpaceExhausted",
    "TokenTypeMismatch",
    "UnknownAccount",
    "UnknownScope",
    "UnknownUser",
    "apply_schema",
]
