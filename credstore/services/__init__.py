"""Service helpers layered over the repositories."""

from .rotation import TokenExchange, ensure_fresh_access_token, rotate_access_token
from .typed_tokens import OAuthState, TypedTokenStore

__all__ = [
    "OAuthState",
    "TokenExchange",
    "TypedTokenStore",
    "ensure_fresh_access_token",
    "rotate_access_token",
]
