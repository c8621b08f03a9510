"""Tests for TypedTokenStore and the OAuthState payload."""

from __future__ import annotations

import json
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel

from credstore.errors import ChallengeMismatch, TokenTypeMismatch
from credstore.models.ephemeral import RedeemedToken
from credstore.proof_key import generate_pair
from credstore.repositories.ephemeral import EphemeralTokenRepository
from credstore.services.typed_tokens import OAuthState, TypedTokenStore
from tests.conftest import T0

pytestmark = pytest.mark.unit


class _Other(BaseModel):
    note: str


def _fake_tokens() -> MagicMock:
    """Ephemeral repository double that keeps issued payloads in a dict."""
    issued: dict[str, bytes] = {}
    tokens = MagicMock(spec=EphemeralTokenRepository)

    async def issue(payload, created_at, expires_at):
        text = f"tok{len(issued)}"
        issued[text] = payload
        return text

    async def redeem(text, *, horizon=None):
        if text not in issued:
            return None
        return RedeemedToken(payload=issued[text], expires_at=T0 + timedelta(minutes=10))

    tokens.issue = AsyncMock(side_effect=issue)
    tokens.redeem = AsyncMock(side_effect=redeem)
    tokens.issued = issued
    return tokens


async def test_round_trip():
    tokens = _fake_tokens()
    store = TypedTokenStore(tokens, OAuthState, "oauth_state")
    state = OAuthState(mode="link", user_id=4)

    text = await store.issue(state, now=T0)

    assert await store.redeem(text, now=T0) == state


async def test_envelope_format():
    tokens = _fake_tokens()
    store = TypedTokenStore(tokens, OAuthState, "oauth_state")

    text = await store.issue(OAuthState(), now=T0)

    envelope = json.loads(tokens.issued[text])
    assert envelope == {
        "type": "oauth_state",
        "val": {"mode": "login", "user_id": None, "code_challenge": None},
    }


async def test_issue_uses_lifetime():
    tokens = _fake_tokens()
    store = TypedTokenStore(tokens, OAuthState, "oauth_state", lifetime=timedelta(minutes=2))

    await store.issue(OAuthState(), now=T0)

    _, created_at, expires_at = tokens.issue.await_args.args
    assert created_at == T0
    assert expires_at == T0 + timedelta(minutes=2)


async def test_redeem_passes_horizon():
    tokens = _fake_tokens()
    store = TypedTokenStore(tokens, OAuthState, "oauth_state")

    await store.redeem("missing", now=T0)

    assert tokens.redeem.await_args.kwargs["horizon"] == T0


async def test_unknown_token_is_none():
    store = TypedTokenStore(_fake_tokens(), OAuthState, "oauth_state")
    assert await store.redeem("missing", now=T0) is None


async def test_wrong_type_is_rejected():
    tokens = _fake_tokens()
    other = TypedTokenStore(tokens, _Other, "other")
    text = await other.issue(_Other(note="hi"), now=T0)

    with pytest.raises(TokenTypeMismatch):
        await TypedTokenStore(tokens, OAuthState, "oauth_state").redeem(text, now=T0)


async def test_untyped_payload_is_rejected():
    tokens = _fake_tokens()
    tokens.issued["raw"] = b"state123"

    with pytest.raises(TokenTypeMismatch):
        await TypedTokenStore(tokens, OAuthState, "oauth_state").redeem("raw", now=T0)


def test_empty_token_type_rejected():
    with pytest.raises(ValueError):
        TypedTokenStore(_fake_tokens(), OAuthState, "")


class TestOAuthStatePkce:
    def test_matching_verifier(self):
        challenge, verifier = generate_pair()
        OAuthState(code_challenge=challenge.value).verify(verifier)

    def test_mismatching_verifier(self):
        challenge, _ = generate_pair()
        _, other = generate_pair()
        with pytest.raises(ChallengeMismatch):
            OAuthState(code_challenge=challenge.value).verify(other)

    def test_no_challenge_and_no_verifier(self):
        OAuthState().verify(None)

    def test_verifier_presented_for_state_without_challenge(self):
        _, verifier = generate_pair()
        with pytest.raises(ChallengeMismatch):
            OAuthState().verify(verifier)

    def test_missing_verifier_for_state_with_challenge(self):
        challenge, _ = generate_pair()
        with pytest.raises(ChallengeMismatch):
            OAuthState(code_challenge=challenge.value).verify(None)
