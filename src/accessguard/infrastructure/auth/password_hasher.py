"""Password hashing utility using salted SHA-256.

Credentials are stored as ``salt:digest`` where the salt is a random UUID hex
string and the digest is the base64-encoded SHA-256 of ``password + salt``.
"""

import base64
import hashlib
import hmac
import secrets
import string
import uuid

TEMP_PASSWORD_PREFIX = "Temp_"
_TEMP_ALPHABET = string.ascii_letters + string.digits


def _digest(password: str, salt: str) -> str:
    raw = hashlib.sha256((password + salt).encode("utf-8")).digest()
    return base64.b64encode(raw).decode("ascii")


def hash_password(password: str) -> str:
    """Hash a password with a fresh random salt.

    Args:
        password: The plaintext password to hash.

    Returns:
        The ``salt:digest`` credential string.

    Example:
        >>> stored = hash_password("Secret1")
        >>> salt, digest = stored.split(":", 1)
        >>> len(salt)
        32
    """
    salt = uuid.uuid4().hex
    return f"{salt}:{_digest(password, salt)}"


def verify_password(password: str, stored: str) -> bool:
    """Verify a password against a stored ``salt:digest`` credential.

    The digest is always recomputed and compared in constant time.

    Args:
        password: The plaintext password to verify.
        stored: The stored credential.

    Returns:
        True if the password matches, False otherwise (including when the
        stored value is empty or malformed).
    """
    if not stored or ":" not in stored:
        return False
    salt, expected = stored.split(":", 1)
    actual = _digest(password or "", salt)
    return hmac.compare_digest(actual.encode("ascii"), expected.encode("ascii", "ignore"))


def generate_temporary_password(length: int = 10) -> str:
    """Generate a one-time temporary password.

    Args:
        length: Number of random characters after the ``Temp_`` prefix.

    Returns:
        A password such as ``Temp_x7Gk2PqA9z``.
    """
    return TEMP_PASSWORD_PREFIX + "".join(secrets.choice(_TEMP_ALPHABET) for _ in range(length))


def generate_session_token(nbytes: int = 32) -> str:
    """Generate an opaque URL-safe session token."""
    return secrets.token_urlsafe(nbytes)
