"""
user.py — ORM Model for Application Users

Purpose:
- Represent authenticated users of the system.
- Store hashed passwords only — never raw.
- Hold the single outstanding password-reset secret (hashed) and its expiry.

Invariant:
- reset_token_hash and reset_token_expiry are either both NULL or both set.
  forgot-password writes them together; a successful reset clears them together.

Used by:
- services/auth_service.py (register, login, password recovery)
- services/authenticator.py (bearer token → identity)
"""

import datetime
import uuid

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from app.core.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form every DateTime column in this schema stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "user"

    id = Column(String(36), primary_key=True, default=_new_id)

    # Authentication fields
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)

    # Display
    name = Column(String, nullable=True)

    # Password recovery
    reset_token_hash = Column(String, nullable=True)
    reset_token_expiry = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    todos = relationship(
        "Todo",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<User {self.email}>"
