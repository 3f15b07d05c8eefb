# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Profile ORM model – role and lifecycle state of an account."""

from sqlalchemy import Column, Integer, String, Boolean, Enum, ForeignKey
from sqlalchemy.orm import validates
from sqlalchemy.sql import func

from database import Base, UTCDateTime

ROLES = ("admin", "user")


class Profile(Base):
    __tablename__ = "user_profiles"

    # Shares the primary key of the credential row it describes
    id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email = Column(String(255), nullable=False, index=True)
    role = Column(Enum(*ROLES, name="user_role"), nullable=False, default="user")
    is_blocked = Column(Boolean, nullable=False, default=False)
    # NULL means the account never expires.  Ignored for admins.
    expires_at = Column(UTCDateTime, nullable=True)
    last_login = Column(UTCDateTime, nullable=True, index=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)

    @validates("role")
    def _validate_role(self, key, value):
        if value not in ROLES:
            raise ValueError(f"Invalid role {value!r}. Must be 'admin' or 'user'")
        return value

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
