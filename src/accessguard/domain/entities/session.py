"""Session entity.

Sessions are created on login or impersonation and revoked individually or in
bulk. The auth token is an opaque string.
"""

from dataclasses import dataclass


@dataclass
class Session:
    """A login or impersonation session.

    Attributes:
        session_id: Unique identifier (``SES_#####``).
        user_id: User the session acts as.
        auth_token: Opaque bearer token.
        impersonated_by: Actor who opened the session on the user's
                         behalf, or None for a regular login.
        expires_at: Advisory expiry for impersonation sessions.
    """

    session_id: str
    user_id: str
    device: str = ""
    ip_address: str = ""
    auth_token: str = ""
    created_at: str | None = None
    last_seen: str | None = None
    revoked_at: str | None = None
    revoked_by: str | None = None
    impersonated_by: str | None = None
    expires_at: str | None = None

    @property
    def is_active(self) -> bool:
        """Check if the session has not been revoked."""
        return not self.revoked_at

    @property
    def is_impersonation(self) -> bool:
        """Check if this session was opened through impersonation."""
        return bool(self.impersonated_by)

    def to_public_dict(self) -> dict[str, str | bool | None]:
        """Return the session without its auth token."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "device": self.device,
            "ip_address": self.ip_address,
            "created_at": self.created_at,
            "last_seen": self.last_seen,
            "revoked_at": self.revoked_at,
            "revoked_by": self.revoked_by,
            "impersonated_by": self.impersonated_by,
            "expires_at": self.expires_at,
            "is_active": self.is_active,
        }
