"""Session service.

Issues sessions on login and impersonation, revokes them one at a time or
all at once for a user, and tracks last-seen timestamps. Tokens are opaque
strings; the service does not sign or expire them.
"""

from datetime import datetime, timedelta
from typing import Optional

from accessguard.core.clock import Clock
from accessguard.core.hooks import HookEvent, HookRegistry
from accessguard.core.logging import get_logger
from accessguard.domain.entities.audit_entry import AuditEvent
from accessguard.domain.entities.hook_context import HookContext
from accessguard.domain.entities.session import Session
from accessguard.domain.exceptions import NotFoundError
from accessguard.domain.services.audit_log_service import AuditLogService
from accessguard.domain.services.id_generator import SequenceIdGenerator
from accessguard.infrastructure.auth.password_hasher import generate_session_token
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.repositories import SessionRepository
from accessguard.infrastructure.persistence.schema import (
    SESSION_ID_PREFIX,
    SESSIONS,
    SYSTEM_ACTOR,
)

logger = get_logger(__name__)

IMPERSONATION_DEVICE = "IMPERSONATION"


class SessionService:
    """Service for session records."""

    def __init__(
        self,
        sessions: SessionRepository,
        audit: AuditLogService,
        id_generator: SequenceIdGenerator,
        locks: LockManager,
        clock: Clock,
        hooks: Optional[HookRegistry] = None,
        token_bytes: int = 32,
    ) -> None:
        self.sessions = sessions
        self.audit = audit
        self.id_generator = id_generator
        self.locks = locks
        self.clock = clock
        self.hooks = hooks
        self.token_bytes = token_bytes

    def create_session(
        self,
        user_id: str,
        actor_id: str,
        device: str = "",
        ip_address: str = "",
        impersonated_by: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> Session:
        """Create a session for a user.

        Args:
            user_id: User the session acts as.
            actor_id: User creating the session (the user itself on login).
            device: Free-text device description.
            ip_address: Client address, if known.
            impersonated_by: Actor opening the session on the user's behalf.
            duration_minutes: Requested lifetime, stored as ``Expires_At``.

        Returns:
            The created session, including its auth token.
        """
        with self.locks.hold(SESSIONS):
            now = self.clock.now()
            expires_at = (
                (now + timedelta(minutes=duration_minutes)).isoformat()
                if duration_minutes
                else None
            )
            session = Session(
                session_id=self.id_generator.next_id(SESSION_ID_PREFIX, SESSIONS),
                user_id=user_id,
                device=device or "",
                ip_address=ip_address or "",
                auth_token=generate_session_token(self.token_bytes),
                created_at=now.isoformat(),
                last_seen=now.isoformat(),
                impersonated_by=impersonated_by,
                expires_at=expires_at,
            )
            self.sessions.create(session)

        self.audit.log(
            actor_id,
            SESSIONS,
            "CREATE_SESSION",
            session.session_id,
            {"user_id": user_id, "impersonated_by": impersonated_by},
        )
        logger.info(
            "Session created",
            session_id=session.session_id,
            user_id=user_id,
            impersonation=bool(impersonated_by),
        )
        return session

    def touch(self, session_id: str) -> bool:
        """Update a session's Last_Seen timestamp.

        Returns:
            True if the session exists and is active.
        """
        with self.locks.hold(SESSIONS):
            session = self.sessions.get_by_id(session_id)
            if session is None or not session.is_active:
                return False
            return self.sessions.update(session_id, {"Last_Seen": self.clock.now_iso()})

    def revoke_session(self, session_id: str, actor_id: str) -> Session:
        """Revoke one session.

        Revoking an already revoked session is a no-op that returns it
        unchanged.

        Raises:
            NotFoundError: If no session has this id.
        """
        with self.locks.hold(SESSIONS):
            session = self.sessions.get_by_id(session_id)
            if session is None:
                raise NotFoundError("Session", session_id)
            if not session.is_active:
                return session
            session.revoked_at = self.clock.now_iso()
            session.revoked_by = actor_id
            self.sessions.update(
                session_id,
                {"Revoked_At": session.revoked_at, "Revoked_By": actor_id},
            )

        self.audit.log(actor_id, SESSIONS, "REVOKE_SESSION", session_id, {"user_id": session.user_id})
        self._publish(actor_id, {"session_ids": [session_id], "user_id": session.user_id})
        return session

    def revoke_user_sessions(self, user_id: str, requested_by: Optional[str] = None) -> int:
        """Revoke every active session of a user.

        Revocations are stamped and audited as ``SYSTEM``; the requesting
        actor is recorded in the audit details.

        Returns:
            Number of sessions revoked.
        """
        revoked: list[str] = []
        with self.locks.hold(SESSIONS):
            now = self.clock.now_iso()
            for session in self.sessions.list_for_user(user_id, include_revoked=False):
                self.sessions.update(
                    session.session_id,
                    {"Revoked_At": now, "Revoked_By": SYSTEM_ACTOR},
                )
                revoked.append(session.session_id)

        if revoked:
            self.audit.record(
                AuditEvent(
                    actor_id=SYSTEM_ACTOR,
                    sheet=SESSIONS,
                    action="REVOKE_USER_SESSIONS",
                    target_id=user_id,
                    details={"revoked": len(revoked), "requested_by": requested_by},
                )
            )
            self._publish(requested_by or SYSTEM_ACTOR, {"session_ids": revoked, "user_id": user_id})
            logger.info("User sessions revoked", user_id=user_id, revoked=len(revoked))
        return len(revoked)

    def list_sessions(self, user_id: str, include_revoked: bool = False) -> list[Session]:
        """List a user's sessions, newest first."""
        sessions = self.sessions.list_for_user(user_id, include_revoked=include_revoked)
        return list(reversed(sessions))

    def get_session(self, session_id: str) -> Session:
        """Get a session by id.

        Raises:
            NotFoundError: If no session has this id.
        """
        session = self.sessions.get_by_id(session_id)
        if session is None:
            raise NotFoundError("Session", session_id)
        return session

    def get_by_token(self, auth_token: str) -> Optional[Session]:
        """Resolve an active, unexpired session from its token."""
        session = self.sessions.get_by_token(auth_token)
        if session is None or not session.is_active or self.is_session_expired(session):
            return None
        return session

    def is_session_expired(self, session: Session, now: Optional[datetime] = None) -> bool:
        """Check a session against its advisory ``Expires_At``.

        Sessions without an expiry never expire.
        """
        expires_at = self.clock.parse(session.expires_at)
        if expires_at is None:
            return False
        return (now or self.clock.now()) >= expires_at

    def _publish(self, actor_id: str, data: dict) -> None:
        if self.hooks is None:
            return
        self.hooks.trigger(
            HookEvent.ON_SESSION_AFTER_REVOKE,
            data=data,
            context=HookContext(actor_id=actor_id, occurred_at=self.clock.now_iso()),
        )
