"""PKCE proof keys (RFC 7636, S256 method).

The challenge travels inside the OAuth state token; the verifier stays with
the client that started the flow and is checked when the state is redeemed.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

from credstore.errors import ChallengeMismatch


def _urlsafe_nopad(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _challenge_for(verifier: str) -> str:
    return _urlsafe_nopad(hashlib.sha256(verifier.encode("ascii")).digest())


@dataclass(frozen=True)
class Challenge:
    value: str


@dataclass(frozen=True)
class Verifier:
    value: str

    def challenge(self) -> Challenge:
        return Challenge(_challenge_for(self.value))

    def verify(self, challenge: Challenge) -> None:
        """Raise ChallengeMismatch unless this verifier produced ``challenge``."""
        if not secrets.compare_digest(_challenge_for(self.value), challenge.value):
            raise ChallengeMismatch("Failed to verify the PKCE challenge")


def generate_pair() -> tuple[Challenge, Verifier]:
    verifier = Verifier(_urlsafe_nopad(secrets.token_bytes(32)))
    return verifier.challenge(), verifier
