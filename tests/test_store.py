"""Tests for the CredentialStore facade."""

from __future__ import annotations

from datetime import timedelta

import pytest

from credstore import CredentialStore, codec
from credstore.core.config import DEFAULT_SCOPES, StoreSettings
from tests.conftest import T0, make_pool

pytestmark = pytest.mark.unit


def _settings(**kwargs) -> StoreSettings:
    return StoreSettings(_env_file=None, database_url="postgresql://localhost/db", **kwargs)


async def test_bootstrap_registers_default_scopes():
    pool = make_pool()

    await CredentialStore(pool).bootstrap()

    assert pool._conn.execute.await_args.args[1] == sorted(set(DEFAULT_SCOPES))


def test_max_issue_attempts_from_settings():
    store = CredentialStore(make_pool(), _settings(max_issue_attempts=5))
    assert store.ephemeral.max_issue_attempts == 5
    assert store.sessions.max_issue_attempts == 5


async def test_issue_ephemeral_uses_configured_lifetime():
    pool = make_pool()
    store = CredentialStore(pool, _settings(ephemeral_token_ttl=120))

    text = await store.issue_ephemeral(b"p", now=T0)

    args = pool._conn.execute.await_args.args
    assert args[1] == codec.decode(text)
    assert args[2:4] == (T0, T0 + timedelta(seconds=120))


async def test_issue_session_uses_configured_lifetime():
    pool = make_pool()
    store = CredentialStore(pool, _settings(session_token_ttl=7))

    await store.issue_session(3, now=T0)

    args = pool._conn.execute.await_args.args
    assert args[3:5] == (T0, T0 + timedelta(days=7))


async def test_issue_without_settings():
    with pytest.raises(RuntimeError):
        await CredentialStore(make_pool()).issue_ephemeral(b"p")


async def test_sweep_expired():
    pool = make_pool()
    pool._conn.execute.side_effect = ["DELETE 2", "DELETE 1"]

    result = await CredentialStore(pool).sweep_expired(T0)

    assert (result.ephemeral, result.sessions) == (2, 1)
