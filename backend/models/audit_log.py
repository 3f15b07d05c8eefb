# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""AuditLog ORM model – tracks admin actions and login lifecycle events."""

from sqlalchemy import Column, Integer, String, Text, ForeignKey

from core.clock import now_utc
from database import Base, UTCDateTime


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # The admin who performed the action (NULL for self-service events)
    admin_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # The account the action was about
    target_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(64), nullable=False, index=True)   # e.g. "block_user"
    detail = Column(Text, nullable=True)
    request_ip = Column(String(45), nullable=True)            # IPv6-sized
    created_at = Column(UTCDateTime, default=now_utc, nullable=False)
