"""Symmetric encryption for stored integration credentials (Fernet)."""

from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken

from manageros.config import settings
from manageros.errors import IntegrationError

# Credential keys containing any of these fragments are stored encrypted
SENSITIVE_KEY_FRAGMENTS = ("encrypted", "token", "key")


def generate_key() -> str:
    return Fernet.generate_key().decode()


def _fernet(key: str | None = None) -> Fernet:
    key = key or settings.encryption_key
    if not key:
        raise IntegrationError("ENCRYPTION_KEY is not configured")
    try:
        return Fernet(key.encode())
    except ValueError as exc:
        raise IntegrationError("ENCRYPTION_KEY is not a valid Fernet key") from exc


def encrypt(plaintext: str, key: str | None = None) -> str:
    return _fernet(key).encrypt(plaintext.encode()).decode()


def decrypt(token: str, key: str | None = None) -> str:
    try:
        return _fernet(key).decrypt(token.encode()).decode()
    except InvalidToken as exc:
        raise IntegrationError("Failed to decrypt credentials") from exc


def is_sensitive(credential_key: str) -> bool:
    lowered = credential_key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEY_FRAGMENTS)


def encrypt_credentials(credentials: dict[str, str], key: str | None = None) -> dict[str, str]:
    """Encrypt the sensitive values of a credentials mapping."""
    return {
        name: encrypt(value, key) if is_sensitive(name) else value
        for name, value in credentials.items()
    }


def decrypt_credentials(credentials: dict[str, str], key: str | None = None) -> dict[str, str]:
    return {
        name: decrypt(value, key) if is_sensitive(name) else value
        for name, value in credentials.items()
    }
