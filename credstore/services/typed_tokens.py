"""Typed payloads on top of the ephemeral token store.

Payloads are stored as ``{"type": <tag>, "val": <model>}`` JSON, so a token
issued for one model can never be redeemed as another.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ValidationError

from credstore.errors import ChallengeMismatch, TokenTypeMismatch
from credstore.expiry import utcnow
from credstore.proof_key import Challenge, Verifier
from credstore.repositories.ephemeral import EphemeralTokenRepository

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class _Envelope(BaseModel):
    type: str
    val: dict[str, Any]


class OAuthState(BaseModel):
    """CSRF state carried through the Twitch OAuth redirect."""

    mode: Literal["login", "link", "bot"] = "login"
    user_id: int | None = None
    code_challenge: str | None = None

    def verify(self, verifier: Verifier | None) -> None:
        """Check the PKCE verifier presented by the client that started the flow.

        A state issued without a challenge must be redeemed without a verifier,
        and one issued with a challenge requires the matching verifier.
        """
        if self.code_challenge is None:
            if verifier is not None:
                raise ChallengeMismatch("State was issued without a PKCE challenge")
            return
        if verifier is None:
            raise ChallengeMismatch("PKCE verifier required for this state")
        verifier.verify(Challenge(self.code_challenge))


class TypedTokenStore(Generic[M]):
    """Issue and redeem ephemeral tokens whose payload is a pydantic model.

    ``token_type`` is persisted with every token and must stay stable across
    releases; do not derive it from the class name.
    """

    def __init__(
        self,
        tokens: EphemeralTokenRepository,
        model: type[M],
        token_type: str,
        lifetime: timedelta = timedelta(minutes=10),
    ) -> None:
        if not token_type:
            raise ValueError("token_type cannot be empty")
        self.tokens = tokens
        self.model = model
        self.token_type = token_type
        self.lifetime = lifetime

    async def issue(self, value: M, *, now: datetime | None = None) -> str:
        created_at = now or utcnow()
        envelope = _Envelope(type=self.token_type, val=value.model_dump(mode="json"))
        return await self.tokens.issue(
            envelope.model_dump_json().encode("utf-8"),
            created_at,
            created_at + self.lifetime,
        )

    async def redeem(self, text: str, *, now: datetime | None = None) -> M | None:
        """Return the stored model, or None if the token is unknown or expired.

        Raises TokenTypeMismatch if the token was issued for another type.
        """
        redeemed = await self.tokens.redeem(text, horizon=now or utcnow())
        if redeemed is None:
            return None

        try:
            envelope = _Envelope.model_validate_json(redeemed.payload)
        except ValidationError as e:
            raise TokenTypeMismatch("Token payload is not a typed envelope") from e

        if envelope.type != self.token_type:
            logger.warning(
                f"Token type mismatch: got {envelope.type!r}, expected {self.token_type!r}"
            )
            raise TokenTypeMismatch(
                f"Wrong token type. Got {envelope.type!r}, expected {self.token_type!r}"
            )

        try:
            return self.model.model_validate(envelope.val)
        except ValidationError as e:
            raise TokenTypeMismatch(f"Payload does not match {self.token_type!r}") from e
