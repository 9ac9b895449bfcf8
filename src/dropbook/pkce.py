"""PKCE (RFC 7636) and anti-CSRF state material."""

from __future__ import annotations

import base64
import hashlib
import secrets

from pydantic import BaseModel

# 32 bytes -> 43 base64url characters, the RFC 7636 minimum verifier length
VERIFIER_BYTES = 32
STATE_BYTES = 16


class PKCEPair(BaseModel):
    code_verifier: str
    code_challenge: str


def _b64url(raw: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_verifier() -> str:
    """Generate a high-entropy code verifier from the OS CSPRNG."""
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def code_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for a verifier."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_state() -> str:
    """Generate a single-use state token for the authorization redirect."""
    return _b64url(secrets.token_bytes(STATE_BYTES))


def generate_pkce() -> PKCEPair:
    verifier = generate_verifier()
    return PKCEPair(code_verifier=verifier, code_challenge=code_challenge(verifier))
