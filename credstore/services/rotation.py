"""Credential rotation: refresh token -> external exchange -> store.

The HTTP exchange with Twitch is supplied by the caller as ``exchange``; it
runs outside any database transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta

from credstore.expiry import is_expired, utcnow
from credstore.models.oauth import AccessToken, ExchangeResult
from credstore.repositories.oauth import OAuthCredentialRepository

logger = logging.getLogger(__name__)

TokenExchange = Callable[[str], Awaitable[ExchangeResult]]


async def rotate_access_token(
    credentials: OAuthCredentialRepository,
    account_id: str,
    exchange: TokenExchange,
) -> AccessToken:
    """Refresh an account's access token and record the new pair.

    Raises UnknownAccount or NoRefreshToken before calling ``exchange``.
    """
    refresh_token = await credentials.require_refresh_token(account_id)
    result = await exchange(refresh_token)

    await credentials.store_credentials(
        account_id,
        result.access_token,
        result.expires_at,
        result.scopes,
        refresh_token=result.refresh_token,
    )
    logger.info(f"Rotated access token for twitch:{account_id}")
    return AccessToken(
        account_id=account_id,
        token=result.access_token,
        expires_at=result.expires_at,
        scopes=frozenset(result.scopes),
    )


async def ensure_fresh_access_token(
    credentials: OAuthCredentialRepository,
    account_id: str,
    exchange: TokenExchange,
    *,
    now: datetime | None = None,
    margin: timedelta = timedelta(minutes=5),
) -> AccessToken:
    """Return the stored access token, rotating it first if it expires within ``margin``."""
    horizon = (now or utcnow()) + margin
    current = await credentials.get_access_token(account_id)
    if current is not None and not is_expired(current.expires_at, horizon):
        return current

    if current is not None:
        logger.debug(f"Access token for twitch:{account_id} expires soon, rotating")
    return await rotate_access_token(credentials, account_id, exchange)
