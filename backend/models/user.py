# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""User ORM model – the credential identity behind every account."""

from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.sql import func

from database import Base, UTCDateTime


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # passlib embeds the salt in the hash string
    password_hash = Column(String(255), nullable=False)
    force_password_change = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
