"""Cryptographic helpers — hashing and magic-link token codec."""

from __future__ import annotations

import hashlib
import secrets

# 32 random bytes -> 256 bits of entropy, 43 URL-safe characters.
TOKEN_BYTES = 32


def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def generate_token() -> str:
    """Generate a new unguessable, URL-safe magic-link token."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def lookup_key(token: str) -> str:
    """Derive the storage key for *token* (hex SHA-256, one-way)."""
    return sha256(token.encode("utf-8")).hex()


def random_hex(nbytes: int = 16) -> str:
    """Random hex string, used for simulated identifiers."""
    return secrets.token_hex(nbytes)
