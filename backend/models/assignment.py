# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Assignment ORM model – grants one account access to one domain."""

from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint

from core.clock import now_utc
from database import Base, UTCDateTime


class Assignment(Base):
    __tablename__ = "user_domains"
    __table_args__ = (
        UniqueConstraint("user_id", "domain_id", name="uq_user_domains_user_domain"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    domain_id = Column(
        Integer,
        ForeignKey("domains.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_at = Column(UTCDateTime, default=now_utc, nullable=False)
