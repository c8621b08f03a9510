from __future__ import annotations

import base64
import hashlib

import pytest

from credstore.errors import ChallengeMismatch
from credstore.proof_key import Challenge, Verifier, generate_pair

pytestmark = pytest.mark.unit


def test_generated_pair_verifies():
    challenge, verifier = generate_pair()
    verifier.verify(challenge)


def test_other_verifier_is_rejected():
    challenge, _ = generate_pair()
    _, other = generate_pair()
    with pytest.raises(ChallengeMismatch):
        other.verify(challenge)


def test_rfc7636_appendix_b_example():
    verifier = Verifier("dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk")
    assert verifier.challenge() == Challenge("E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM")


def test_challenge_is_unpadded_urlsafe_sha256():
    challenge, verifier = generate_pair()
    digest = hashlib.sha256(verifier.value.encode()).digest()
    assert challenge.value == base64.urlsafe_b64encode(digest).decode().rstrip("=")
    assert "=" not in verifier.value
