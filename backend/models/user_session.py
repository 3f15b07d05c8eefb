# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""UserSession ORM model – the single allowed login of an account."""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, Index

from core.clock import now_utc
from database import Base, UTCDateTime


class UserSession(Base):
    __tablename__ = "user_sessions"
    __table_args__ = (
        # "active sessions of user X" is the hot path of every poll
        Index("idx_user_sessions_user_active", "user_id", "is_active"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    session_token = Column(String(128), unique=True, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
    last_activity = Column(UTCDateTime, default=now_utc, nullable=False)
