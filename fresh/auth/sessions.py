"""Login sessions: creation, key verification, activity and revocation."""

from __future__ import annotations

import logging
from typing import Callable

from fresh.auth.models import Session, SessionGrant
from fresh.core.models import now_ts
from fresh.core.repository import DocumentRepository
from fresh.core.security import generate_key, hash_secret, verify_secret
from fresh.core.storage import SESSIONS, DocumentStore

LOGGER = logging.getLogger(__name__)


class SessionRepository(DocumentRepository[Session]):
    model = Session
    collection_name = SESSIONS


class SessionStore:
    """Creates and authenticates sessions; only key hashes are persisted."""

    def __init__(
        self, store: DocumentStore, *, clock: Callable[[], float] = now_ts
    ) -> None:
        self.repo = SessionRepository(store)
        self._clock = clock

    def create(self, user_id: str, ip: str, user_agent: str | None) -> SessionGrant:
        """Persist a new session and return it with its plaintext key."""
        key_hash = hash_secret(generate_key())
        session = self.repo.insert(
            Session(
                user_id=user_id,
                key_hash=key_hash.hash,
                time_created=self._clock(),
                ip=ip or "",
                user_agent=user_agent or "",
            )
        )
        LOGGER.info(
            "session_created", extra={"user_id": user_id, "session_id": session.id}
        )
        return SessionGrant(session=session, key=key_hash.secret)

    def find_by_id(self, session_id: str) -> Session | None:
        return self.repo.find_by_id(session_id)

    def find_by_credentials(self, session_id: str, key: str) -> Session | None:
        """Return the session when both the id and the key match."""
        if not session_id or not key:
            return None
        session = self.repo.find_by_id(session_id)
        if session is None:
            return None
        if not verify_secret(key, session.key_hash):
            return None
        return session

    def list_for_user(self, user_id: str) -> list[Session]:
        return self.repo.find({"user_id": user_id}, sort=[("time_created", -1)])

    def touch_last_active(self, session: Session) -> Session:
        """Record activity on the session."""
        now = self._clock()
        updated = self.repo.update(session.id, {"$set": {"last_active": now}})
        session.last_active = now
        return updated or session

    def delete_by_id(self, session_id: str) -> Session | None:
        deleted = self.repo.delete(session_id)
        if deleted is not None:
            LOGGER.info(
                "session_deleted",
                extra={"user_id": deleted.user_id, "session_id": session_id},
            )
        return deleted

    def delete_for_user(self, session_id: str, user_id: str) -> Session | None:
        """Delete a session only if it belongs to the given user."""
        return self.repo.find_one_and_delete({"_id": session_id, "user_id": user_id})

    def delete_all_for_user(self, user_id: str) -> int:
        """Revoke every session of a user, forcing re-login."""
        deleted = self.repo.delete_many({"user_id": user_id})
        LOGGER.info("user_sessions_deleted count=%s", deleted, extra={"user_id": user_id})
        return deleted
