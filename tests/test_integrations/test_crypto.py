"""Tests for credential encryption."""

from __future__ import annotations

import pytest

from manageros.errors import IntegrationError
from manageros.integrations import crypto


class TestCrypto:
    """Tests for credential encryption."""

    def test_round_trip_with_configured_key(self):
        """Test encrypt/decrypt with the configured key."""
        token = crypto.encrypt("s3cret")
        assert token != "s3cret"
        assert crypto.decrypt(token) == "s3cret"

    def test_wrong_key_fails(self):
        """Test that decrypting with another key fails."""
        token = crypto.encrypt("s3cret", key=crypto.generate_key())
        with pytest.raises(IntegrationError, match="decrypt"):
            crypto.decrypt(token, key=crypto.generate_key())

    def test_invalid_key(self):
        """Test that a malformed key is rejected."""
        with pytest.raises(IntegrationError, match="not a valid Fernet key"):
            crypto.encrypt("x", key="too-short")

    def test_missing_key(self, monkeypatch):
        """Test that encryption needs a configured key."""
        monkeypatch.setattr(crypto.settings, "encryption_key", "")
        with pytest.raises(IntegrationError, match="not configured"):
            crypto.encrypt("x")

    @pytest.mark.parametrize(
        "name, sensitive",
        [
            ("encrypted_api_key", True),
            ("accessToken", True),
            ("API_KEY", True),
            ("base_url", False),
            ("email", False),
        ],
    )
    def test_is_sensitive(self, name, sensitive):
        """Test which credential field names count as secret."""
        assert crypto.is_sensitive(name) is sensitive

    def test_credentials_only_encrypt_sensitive_values(self):
        """Test that only secret fields are encrypted."""
        stored = crypto.encrypt_credentials(
            {"base_url": "https://acme.atlassian.net", "encrypted_api_key": "abc"}
        )
        assert stored["base_url"] == "https://acme.atlassian.net"
        assert stored["encrypted_api_key"] != "abc"
        assert crypto.decrypt_credentials(stored)["encrypted_api_key"] == "abc"
