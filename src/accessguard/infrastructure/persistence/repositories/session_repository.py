"""Session repository."""

from typing import Any

from accessguard.domain.entities.session import Session
from accessguard.infrastructure.persistence.repositories.base import SheetRepository
from accessguard.infrastructure.persistence.schema import SESSIONS, blank_to_none

SESSION_COLUMNS: dict[str, str] = {
    "Session_Id": "session_id",
    "User_Id": "user_id",
    "Device": "device",
    "Ip_Address": "ip_address",
    "Auth_Token": "auth_token",
    "Created_At": "created_at",
    "Last_Seen": "last_seen",
    "Revoked_At": "revoked_at",
    "Revoked_By": "revoked_by",
    "Impersonated_By": "impersonated_by",
    "Expires_At": "expires_at",
}

_REQUIRED = {"Session_Id", "User_Id", "Device", "Ip_Address", "Auth_Token"}


class SessionRepository(SheetRepository):
    """Repository for SYS_Sessions rows."""

    sheet = SESSIONS
    key_field = "Session_Id"

    @staticmethod
    def to_entity(row: dict[str, str]) -> Session:
        """Convert a sheet row to a Session."""
        values: dict[str, Any] = {}
        for header, attr in SESSION_COLUMNS.items():
            raw = row.get(header, "")
            values[attr] = (raw or "") if header in _REQUIRED else blank_to_none(raw)
        return Session(**values)

    @staticmethod
    def to_row(session: Session) -> dict[str, Any]:
        """Convert a Session to a sheet row."""
        return {header: getattr(session, attr) for header, attr in SESSION_COLUMNS.items()}

    def list_all(self) -> list[Session]:
        """Get every session, in insertion order."""
        return [self.to_entity(row) for row in self._rows() if row.get("Session_Id")]

    def list_for_user(self, user_id: str, include_revoked: bool = True) -> list[Session]:
        """Get the sessions of one user."""
        return [
            s
            for s in self.list_all()
            if s.user_id == user_id and (include_revoked or s.is_active)
        ]

    def get_by_id(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        if not session_id:
            return None
        row = self._find_row(str(session_id))
        return self.to_entity(row) if row else None

    def get_by_token(self, auth_token: str) -> Session | None:
        """Get a session by its opaque token."""
        if not auth_token:
            return None
        for session in self.list_all():
            if session.auth_token == auth_token:
                return session
        return None

    def create(self, session: Session) -> Session:
        """Append a new session row."""
        self._append(self.to_row(session))
        return session

    def update(self, session_id: str, patch: dict[str, Any]) -> bool:
        """Patch a session row by header name."""
        return self._update(session_id, patch)
