"""Users API — registration, verification, login, password reset.

Learn: Routes for the credential lifecycle:
- POST /users/register → create a Pending account, mail the verify link
- GET /users/verify-now/:code → HTML page; spends the verification code
- POST /users/authenticate → username/password → session token
- PUT /users/reset-password → mail a reset link
- GET /users/reset-password-now/:token → HTML reset form (if token valid)
- POST /users/reset-password-now → spend the reset token, set new password
- GET /users/me → current account (bearer session token)

JSON routes let CredentialError propagate; the handler registered in
main.py turns it into {"success": false, "kind", "message"} with the
error's status code. The two HTML routes render their own error pages.
"""

import uuid

from fastapi import APIRouter, Depends

from credentia.api import pages
from credentia.auth.dependencies import get_credential_service, get_current_account_id
from credentia.errors import CredentialError
from credentia.schemas.account import (
    AccountRead,
    AckResponse,
    AuthenticateRequest,
    AuthResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    RegisterRequest,
)
from credentia.services.credential_service import CredentialService

router = APIRouter(prefix="/users")

RESET_CONFIRM_PATH = "/api/v1/users/reset-password-now"


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AckResponse, status_code=201)
async def register(
    body: RegisterRequest,
    svc: CredentialService = Depends(get_credential_service),
):
    """Create a new account. It starts unverified."""
    await svc.register(
        username=body.username,
        email=body.email,
        password=body.password,
        name=body.name,
    )
    return AckResponse(
        message="Your account is created please verify your email address."
    )


# ─── Verify ──────────────────────────────────────────────


@router.get("/verify-now/{verification_code}")
async def verify_now(
    verification_code: str,
    svc: CredentialService = Depends(get_credential_service),
):
    """Landing page for the link in the verification email."""
    try:
        account = await svc.verify_account(verification_code)
    except CredentialError as e:
        return pages.verification_failed(e.message, e.status_code)
    return pages.verification_success(account.username)


# ─── Authenticate ────────────────────────────────────────


@router.post("/authenticate", response_model=AuthResponse)
async def authenticate(
    body: AuthenticateRequest,
    svc: CredentialService = Depends(get_credential_service),
):
    """Login with username and password → session token.

    404 for an unknown username, 401 for a wrong password.
    """
    result = await svc.authenticate(username=body.username, password=body.password)
    return AuthResponse(
        user=AccountRead.model_validate(result.account),
        token=result.session_token,
    )


# ─── Password reset ──────────────────────────────────────


@router.put("/reset-password", response_model=AckResponse)
async def request_password_reset(
    body: PasswordResetRequest,
    svc: CredentialService = Depends(get_credential_service),
):
    """Send a password reset link to the account's email."""
    await svc.request_password_reset(body.email)
    return AckResponse(message="Password reset link is sent to your email.")


@router.get("/reset-password-now/{reset_token}")
async def reset_password_form(
    reset_token: str,
    svc: CredentialService = Depends(get_credential_service),
):
    """Landing page for the link in the reset email."""
    try:
        valid = await svc.validate_reset_token(reset_token)
    except CredentialError as e:
        return pages.reset_failed(e.message, e.status_code)
    if not valid:
        return pages.reset_unauthorized(
            "Password reset link is invalid or has expired."
        )
    return pages.reset_form(reset_token, RESET_CONFIRM_PATH)


@router.post("/reset-password-now", response_model=AckResponse)
async def confirm_password_reset(
    body: PasswordResetConfirm,
    svc: CredentialService = Depends(get_credential_service),
):
    """Set a new password using a valid reset token."""
    await svc.confirm_password_reset(token=body.reset_token, password=body.password)
    return AckResponse(
        message="Your password reset request is complete and your password "
        "is reset successfully. Login into your account with your new password."
    )


# ─── Current account ────────────────────────────────────


@router.get("/me", response_model=AccountRead)
async def get_me(
    account_id: uuid.UUID = Depends(get_current_account_id),
    svc: CredentialService = Depends(get_credential_service),
):
    """The account behind the bearer session token."""
    return await svc.get_account(account_id)
