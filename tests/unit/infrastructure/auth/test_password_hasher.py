"""Unit tests for password hashing utilities."""

import base64
import hashlib

import pytest

from accessguard.infrastructure.auth.password_hasher import (
    TEMP_PASSWORD_PREFIX,
    generate_session_token,
    generate_temporary_password,
    hash_password,
    verify_password,
)


class TestHashPassword:
    """Tests for hash_password function."""

    def test_format_is_salt_colon_digest(self):
        """Test that the stored credential is uuid-hex salt and base64 SHA-256."""
        stored = hash_password("Secret1")
        salt, digest = stored.split(":", 1)

        assert len(salt) == 32
        expected = base64.b64encode(hashlib.sha256(("Secret1" + salt).encode()).digest()).decode()
        assert digest == expected

    def test_hash_password_different_for_same_input(self):
        """Test that hashing the same password twice produces different hashes (due to salt)."""
        assert hash_password("Secret1") != hash_password("Secret1")

    def test_unicode_password(self):
        """Test hashing passwords with non-ASCII characters."""
        stored = hash_password("pässwörd-密码")

        assert verify_password("pässwörd-密码", stored)


class TestVerifyPassword:
    """Tests for verify_password function."""

    def test_correct_password(self):
        assert verify_password("Secret1", hash_password("Secret1")) is True

    def test_wrong_password(self):
        assert verify_password("secret1", hash_password("Secret1")) is False

    @pytest.mark.parametrize("stored", ["", "no-colon", None])
    def test_missing_or_malformed_hash(self, stored):
        """Test that users without a usable credential never verify."""
        assert verify_password("anything", stored) is False

    def test_verifies_externally_produced_hash(self):
        """Test compatibility with credentials written by other tools."""
        salt = "0123456789abcdef0123456789abcdef"
        digest = base64.b64encode(hashlib.sha256(("Legacy9" + salt).encode()).digest()).decode()

        assert verify_password("Legacy9", f"{salt}:{digest}")


class TestGenerators:
    """Tests for temporary password and token generation."""

    def test_temporary_password_shape(self):
        password = generate_temporary_password(12)

        assert password.startswith(TEMP_PASSWORD_PREFIX)
        assert len(password) == len(TEMP_PASSWORD_PREFIX) + 12
        assert password[len(TEMP_PASSWORD_PREFIX):].isalnum()

    def test_temporary_passwords_differ(self):
        assert len({generate_temporary_password() for _ in range(20)}) == 20

    def test_session_token(self):
        token = generate_session_token(32)

        assert len(token) >= 43
        assert generate_session_token(32) != token
