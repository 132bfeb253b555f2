"""API key/secret generation for programmatic access."""

from __future__ import annotations

import secrets

API_KEY_BYTES = 32
API_SECRET_BYTES = 64


def generate_api_key() -> str:
    # identifies the caller, like a username
    return secrets.token_hex(API_KEY_BYTES)


def generate_api_secret() -> str:
    return secrets.token_hex(API_SECRET_BYTES)


def generate_api_credentials() -> tuple[str, str]:
    """Return a fresh ``(api_key, api_secret)`` pair."""
    return generate_api_key(), generate_api_secret()
