"""
deps.py — FastAPI Dependencies Shared by the v1 Routers

Collaborators (hashers, token service, settings) are built once by
create_app() and stored on `app.state`; repositories are bound to the
request's database session here.
"""

import datetime
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.auth_service import AuthService
from app.services.authenticator import Identity, RequestAuthenticator
from app.services.repositories.todo_repository import TodoRepository
from app.services.repositories.user_repository import UserRepository


def get_user_repository(db: Session = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_todo_repository(db: Session = Depends(get_db)) -> TodoRepository:
    return TodoRepository(db)


def get_auth_service(
    request: Request,
    users: UserRepository = Depends(get_user_repository),
) -> AuthService:
    state = request.app.state
    return AuthService(
        users=users,
        password_hasher=state.password_hasher,
        reset_token_hasher=state.reset_token_hasher,
        tokens=state.token_service,
        reset_token_ttl=datetime.timedelta(minutes=state.settings.RESET_TOKEN_EXPIRE_MINUTES),
        reset_token_bytes=state.settings.RESET_TOKEN_BYTES,
    )


def get_current_identity(
    request: Request,
    authorization: Optional[str] = Header(None),
    users: UserRepository = Depends(get_user_repository),
) -> Identity:
    """
    Guard for protected routes: resolves the bearer token to an Identity and
    attaches it to `request.state.identity`.
    """
    authenticator = RequestAuthenticator(tokens=request.app.state.token_service, users=users)
    identity = authenticator.authenticate(authorization)
    request.state.identity = identity
    return identity
