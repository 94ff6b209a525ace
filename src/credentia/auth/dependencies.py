"""FastAPI dependencies for the credential service.

Learn: These are used as Depends() in route handlers. The token issuer,
the notification dispatcher and the settings are built once in
create_app() and parked on app.state; every request gets a fresh
CredentialService bound to its own DB session.

A bearer session token is checked by the token issuer alone (no DB hit)
before any route that needs an identity runs.
"""

import uuid
from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from credentia.auth.tokens import TokenIssuer
from credentia.config import Settings
from credentia.db.engine import get_db
from credentia.errors import InvalidSessionTokenError
from credentia.mail.dispatcher import NotificationDispatcher
from credentia.services.credential_service import CredentialService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.tokens


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


def get_credential_service(
    db: AsyncSession = Depends(get_db),
    tokens: TokenIssuer = Depends(get_token_issuer),
    notifier: NotificationDispatcher = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> CredentialService:
    return CredentialService(db, tokens=tokens, notifier=notifier, settings=settings)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_account_id(
    authorization: Optional[str] = Header(None),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> uuid.UUID:
    """Account id from a valid bearer session token.

    Raises InvalidSessionTokenError (401) when the header is missing or
    the token does not verify.
    """
    token = _bearer_token(authorization)
    if token is None:
        raise InvalidSessionTokenError("Authentication required.")
    account_id = tokens.verify_session_token(token)
    if account_id is None:
        raise InvalidSessionTokenError()
    return account_id
