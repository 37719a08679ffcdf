"""Authentication infrastructure: credential hashing and token generation."""

from accessguard.infrastructure.auth.password_hasher import (
    generate_session_token,
    generate_temporary_password,
    hash_password,
    verify_password,
)

__all__ = [
    "generate_session_token",
    "generate_temporary_password",
    "hash_password",
    "verify_password",
]
