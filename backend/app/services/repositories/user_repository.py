"""
Persistence helpers for User records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select, update
from sqlalchemy.engine import Row
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.models.user import User


logger = get_logger(__name__)


class DuplicateRecordError(Exception):
    """A unique constraint rejected an insert."""


class UserRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------ #
    # Lookups
    def find_by_email(self, email: str) -> Optional[User]:
        return self._session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

    def find_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self._session.get(User, user_id)

    def find_identity(self, user_id: Optional[str]) -> Optional[Row]:
        """Fetch only (id, email, name); credential columns are never loaded."""
        if not user_id:
            return None
        return self._session.execute(
            select(User.id, User.email, User.name).where(User.id == user_id)
        ).first()

    def find_with_active_reset_token(self, now: datetime) -> List[User]:
        """Users holding a reset hash whose expiry is strictly after `now`, newest first."""
        return list(
            self._session.execute(
                select(User)
                .where(User.reset_token_hash.is_not(None))
                .where(User.reset_token_expiry > now)
                .order_by(User.reset_token_expiry.desc())
            ).scalars()
        )

    # ------------------------------------------------------------------ #
    # Writes
    def create(self, email: str, password_hash: str, name: Optional[str] = None) -> User:
        user = User(
            email=email,
            password_hash=password_hash,
            name=name,
            reset_token_hash=None,
            reset_token_expiry=None,
        )
        self._session.add(user)
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateRecordError(f"User with email {email!r} already exists") from exc
        self._session.refresh(user)
        return user

    def update(self, user: User, **fields: Any) -> User:
        for key, value in fields.items():
            if not hasattr(User, key):
                raise AttributeError(f"User has no field {key!r}")
            setattr(user, key, value)
        self._session.commit()
        self._session.refresh(user)
        return user

    def consume_reset_token(self, user_id: str, expected_hash: str, password_hash: str) -> bool:
        """
        Set a new password and clear both reset fields in one UPDATE.

        The row only changes while it still holds `expected_hash`; returns
        False when another request already consumed or replaced the token.
        """
        result = self._session.execute(
            update(User)
            .where(User.id == user_id)
            .where(User.reset_token_hash == expected_hash)
            .values(
                password_hash=password_hash,
                reset_token_hash=None,
                reset_token_expiry=None,
            )
        )
        self._session.commit()
        consumed = result.rowcount == 1
        if not consumed:
            logger.info("Reset token for user %s was consumed concurrently", user_id)
        return consumed

    def delete(self, user: User) -> None:
        self._session.delete(user)
        self._session.commit()
