"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. It is also where the process-wide collaborators are built,
once, from the frozen settings: the token issuer (signing key), the mail
transport and its dispatcher. They live on app.state for the lifetime of
the process. Lifespan closes them (and the DB pool) at shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from credentia import __version__
from credentia.api import api_router
from credentia.auth.tokens import TokenIssuer
from credentia.config import Settings, settings as default_settings
from credentia.errors import CredentialError, InvalidSessionTokenError
from credentia.log_config import configure_logging
from credentia.mail.dispatcher import NotificationDispatcher
from credentia.mail.transport import build_mailer
from credentia.middleware.request_id import RequestIdMiddleware
from credentia.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    cfg: Settings = app.state.settings
    logger.info(
        "credentia.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
        mail_backend=cfg.mail_backend,
    )

    yield

    logger.info("credentia.shutdown")
    await app.state.notifier.aclose()

    from credentia.db.engine import engine
    await engine.dispose()


async def credential_error_handler(request: Request, exc: CredentialError):
    """Render every classified failure the same way."""
    headers = None
    if isinstance(exc, InvalidSessionTokenError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "kind": exc.kind, "message": exc.message},
        headers=headers,
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    settings = settings or default_settings
    configure_logging(settings)

    app = FastAPI(
        title="Credentia",
        description="Account registration, verification, login and password reset",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.tokens = TokenIssuer.from_settings(settings)
    app.state.notifier = NotificationDispatcher(build_mailer(settings))

    app.add_exception_handler(CredentialError, credential_error_handler)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: credentia.main:app)
app = create_app()
