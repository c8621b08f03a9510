"""Opaque token generation and URL-safe text encoding.

Raw tokens are ``TOKEN_BYTES`` random bytes from the OS CSPRNG. The text form
is standard base64 with ``/`` -> ``_`` and ``+`` -> ``-``. The raw length is a
multiple of 3, so the text form never carries ``=`` padding.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import re
import secrets

from credstore.errors import InvalidTokenFormat

TOKEN_BYTES = 24
TOKEN_TEXT_LENGTH = TOKEN_BYTES // 3 * 4

_TEXT_RE = re.compile(r"[A-Za-z0-9_-]+")
_TO_URLSAFE = str.maketrans({"/": "_", "+": "-"})
_FROM_URLSAFE = str.maketrans({"_": "/", "-": "+"})


def generate() -> bytes:
    """Return a fresh raw token."""
    return secrets.token_bytes(TOKEN_BYTES)


def encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii").translate(_TO_URLSAFE)


def decode(text: str) -> bytes:
    """Decode token text back to its raw bytes.

    Raises InvalidTokenFormat for anything ``encode`` could not have produced.
    """
    if not isinstance(text, str) or len(text) != TOKEN_TEXT_LENGTH:
        raise InvalidTokenFormat("Token has the wrong length")
    if not _TEXT_RE.fullmatch(text):
        raise InvalidTokenFormat("Token contains characters outside the URL-safe alphabet")

    try:
        raw = base64.b64decode(text.translate(_FROM_URLSAFE), validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidTokenFormat(f"Token is not valid base64: {e}") from e

    if len(raw) != TOKEN_BYTES:
        raise InvalidTokenFormat("Token decodes to the wrong number of bytes")
    return raw


def fingerprint(raw: bytes) -> str:
    """Short non-reversible tag for log lines. Never log the token itself."""
    return hashlib.sha256(raw).hexdigest()[:8]
