# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""Domain ORM model – a hidden target URL published under a display name."""

from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.sql import func

from database import Base, UTCDateTime


class Domain(Base):
    __tablename__ = "domains"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # base64( ciphertext || 16-byte GCM tag ) of the hidden target URL.
    # Never contains plaintext.
    encrypted_target = Column(Text, nullable=False)
    # base64( 12-byte AES-GCM nonce )
    iv = Column(String(64), nullable=False)
    masked_name = Column(String(255), nullable=False)
    image_url = Column(String(2048), nullable=True)
    image_alt = Column(String(255), nullable=True)
    created_by = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(UTCDateTime, server_default=func.now(), nullable=False)
