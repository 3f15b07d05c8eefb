# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Session registry – at most one active login session per account.

Invariant
---------
For a given user, at most one ``user_sessions`` row has ``is_active = True``.
``create_session`` enforces it by deactivating and inserting inside one
transaction while holding a row lock on the owning ``users`` row, so two
near-simultaneous logins for the same account are serialised by the
database and the later one ends up as the only active session.

Tokens are opaque ``secrets.token_urlsafe`` strings.  A malformed token is
never an error of its own: it simply does not match any row.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.clock import now_utc
from core.config import settings
from core.logger import logger
from models.user import User
from models.user_session import UserSession

# token_urlsafe(32) yields 43 characters; anything far outside that range
# cannot be ours.
_TOKEN_BYTES = 32
_MAX_TOKEN_LENGTH = 128


@dataclass
class SessionCheck:
    valid: bool
    session: Optional[UserSession] = None


def _well_formed(token) -> bool:
    return isinstance(token, str) and 0 < len(token) <= _MAX_TOKEN_LENGTH


class SessionRegistry:
    """Create, validate and invalidate the per-account session token."""

    def __init__(self, db: Session):
        self._db = db

    def create_session(self, user_id: int) -> UserSession:
        """
        Deactivate every active session of *user_id* and insert a new one.
        Commits.  Returns the new row; its ``session_token`` is the token.
        """
        db = self._db
        now = now_utc()

        # Serialisation point for concurrent logins of the same account
        db.query(User.id).filter(User.id == user_id).with_for_update().one()

        superseded = self._deactivate(user_id)
        session = UserSession(
            user_id=user_id,
            session_token=secrets.token_urlsafe(_TOKEN_BYTES),
            is_active=True,
            created_at=now,
            last_activity=now,
        )
        db.add(session)
        db.commit()
        db.refresh(session)

        logger.info(
            "session created | user_id=%s session_id=%s superseded=%d",
            user_id, session.id, superseded,
        )
        return session

    def validate_session(self, user_id: int, token) -> SessionCheck:
        """
        ``valid`` is True only for the user's currently active token.  A hit
        refreshes ``last_activity``; failing to do so never changes the answer.
        """
        if not _well_formed(token):
            return SessionCheck(valid=False)

        session = (
            self._db.query(UserSession)
            .filter(
                UserSession.user_id == user_id,
                UserSession.session_token == token,
                UserSession.is_active.is_(True),
            )
            .first()
        )
        if session is None:
            return SessionCheck(valid=False)

        self._touch(session)
        return SessionCheck(valid=True, session=session)

    def invalidate_all_sessions(self, user_id: int, commit: bool = True) -> int:
        """Set ``is_active = False`` on every session of *user_id*.  Idempotent."""
        count = self._deactivate(user_id)
        if commit:
            self._db.commit()
        if count:
            logger.info("sessions invalidated | user_id=%s count=%d", user_id, count)
        return count

    def cleanup(self, now: Optional[datetime] = None) -> int:
        """Deactivate active sessions idle for longer than ``session_stale_minutes``."""
        cutoff = (now or now_utc()) - timedelta(minutes=settings.session_stale_minutes)
        count = (
            self._db.query(UserSession)
            .filter(
                UserSession.is_active.is_(True),
                UserSession.last_activity < cutoff,
            )
            .update({UserSession.is_active: False}, synchronize_session=False)
        )
        self._db.commit()
        logger.info("stale session cleanup | deactivated=%d", count)
        return count

    def active_session(self, user_id: int) -> Optional[UserSession]:
        return (
            self._db.query(UserSession)
            .filter(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .first()
        )

    # -- internals -----------------------------------------------------------

    def _deactivate(self, user_id: int) -> int:
        return (
            self._db.query(UserSession)
            .filter(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .update({UserSession.is_active: False}, synchronize_session="fetch")
        )

    def _touch(self, session: UserSession) -> None:
        session_id = session.id
        try:
            session.last_activity = now_utc()
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.warning(
                "could not refresh last_activity | session_id=%s", session_id, exc_info=True
            )
