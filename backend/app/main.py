"""
main.py — FastAPI Application Entrypoint

Purpose:
- Build the application from Settings: logging, database, hashers, token
  service, middleware, error handlers and routers.
- Define root-level health/status endpoints.
- Provide `app` object used by ASGI server (uvicorn / hypercorn).

This file should stay clean — no business logic here.
"""

import datetime
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from app.api.v1 import auth, todos
from app.core.config import Settings
from app.core.config import settings as default_settings
from app.core.database import build_engine, build_session_factory, create_tables, get_db
from app.core.errors import register_exception_handlers
from app.core.logging import configure_logging, get_logger
from app.core.middleware import (
    RateLimiter,
    RateLimitMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from app.core.security import PasswordHasher, TokenService

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
) -> FastAPI:
    """
    Assemble the application.

    Parameters:
        settings: defaults to the process-wide settings singleton.
        session_factory: inject an existing session factory (tests, scripts);
            otherwise one is built from settings.DATABASE_URL.
    """
    settings = settings or default_settings

    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Todo Backend",
        description="Multi-user todo list API with token authentication and password recovery",
        version="0.1.0",
    )

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    if session_factory is None:
        engine = build_engine(settings.DATABASE_URL)
        if settings.DB_CREATE_TABLES:
            create_tables(engine)
        session_factory = build_session_factory(engine)

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.password_hasher = PasswordHasher(rounds=settings.PASSWORD_HASH_ROUNDS)
    app.state.reset_token_hasher = PasswordHasher(rounds=settings.RESET_TOKEN_HASH_ROUNDS)
    app.state.token_service = TokenService(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        expire_minutes=settings.JWT_EXPIRE_MINUTES,
    )

    # -------------------------------------------------------------------------
    # Middleware (last added runs first)
    # -------------------------------------------------------------------------

    if settings.RATE_LIMIT_ENABLED:
        app.state.rate_limiter = RateLimiter(
            max_requests=settings.RATE_LIMIT_MAX_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        app.add_middleware(RateLimitMiddleware, limiter=app.state.rate_limiter)

    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.MAX_REQUEST_BYTES)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials="*" not in settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)

    register_exception_handlers(app)

    # -------------------------------------------------------------------------
    # Router Registration
    # -------------------------------------------------------------------------

    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(todos.router, prefix=settings.API_PREFIX)

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @app.get("/")
    def root():
        return {"status": "ok", "message": "Todo backend running"}

    @app.get("/health")
    def health(db: Session = Depends(get_db)):
        timestamp = datetime.datetime.now(datetime.timezone.utc).isoformat()
        try:
            db.execute(text("SELECT 1"))
        except Exception:
            logger.exception("Health check failed")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "error": "Database connection failed",
                    "timestamp": timestamp,
                },
            )
        return {"status": "healthy", "timestamp": timestamp}

    logger.info("Application configured (environment=%s)", settings.ENVIRONMENT)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="127.0.0.1", port=8000, reload=True)
