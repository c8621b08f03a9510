"""Error taxonomy for the credential store.

Repositories translate asyncpg integrity violations into these types, so
callers can branch on the exception class alone.
"""

from __future__ import annotations


class CredentialStoreError(Exception):
    """Base class for every error raised by the credential store."""


class InvalidTokenFormat(CredentialStoreError):
    """Token text is not a well-formed URL-safe token."""


class NotFound(CredentialStoreError):
    """Token is absent, expired or malformed (deliberately indistinguishable)."""


class UnknownAccount(CredentialStoreError):
    def __init__(self, account_id: str) -> None:
        super().__init__(f"Unknown account: {account_id}")
        self.account_id = account_id


class UnknownUser(CredentialStoreError):
    def __init__(self, user_id: int) -> None:
        super().__init__(f"Unknown user: {user_id}")
        self.user_id = user_id


class DuplicateIdentity(CredentialStoreError):
    """An identity is already linked to a different user."""


class UnknownScope(CredentialStoreError):
    def __init__(self, scopes: set[str] | frozenset[str]) -> None:
        super().__init__(f"Unregistered scope(s): {', '.join(sorted(scopes))}")
        self.scopes = frozenset(scopes)


class InvalidScopeName(CredentialStoreError):
    """Scope name is not a valid RFC 6749 scope-token."""


class NoRefreshToken(CredentialStoreError):
    def __init__(self, account_id: str) -> None:
        super().__init__(f"No refresh token stored for account {account_id}")
        self.account_id = account_id


class InvalidExpiry(CredentialStoreError):
    """expires_at must be strictly later than created_at."""


class TokenSpaceExhausted(CredentialStoreError):
    """Every generated token collided with an existing one."""


class TokenTypeMismatch(CredentialStoreError):
    """A typed token was redeemed as a different payload type."""


class ChallengeMismatch(CredentialStoreError):
    """PKCE verifier does not match the stored challenge."""
