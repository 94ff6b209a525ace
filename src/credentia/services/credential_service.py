"""Credential service — the account lifecycle state machine.

Learn: Service layer separates business logic from HTTP routing.
API routes call the service, the service calls the account store, the
password hasher, the token issuer, and the notification dispatcher.

Account states:
    Pending  (verified=False) ──verify_account──▶ Verified (verified=True)
and, independently, ResetPending while a reset token is set and unexpired.

Operations:
1. register → Pending account with a verification code, verification mail
2. verify_account → spends the code, flips verified
3. authenticate → read-only password check, returns a session token
4. request_password_reset → stores a reset token + expiry, reset mail
5. validate_reset_token → read-only check used before showing the form
6. confirm_password_reset → spends the reset token, replaces the hash

Single-use tokens are spent with a conditional UPDATE in the store, so the
check and the write are one statement. Mail goes out only after commit,
through the dispatcher, and never affects the result.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from credentia.auth.password import hash_password, verify_password
from credentia.auth.tokens import TokenIssuer
from credentia.config import Settings
from credentia.db.models import Account, utcnow
from credentia.errors import (
    EmailNotFoundError,
    EmailTakenError,
    InvalidResetTokenError,
    InvalidSessionTokenError,
    InvalidVerificationTokenError,
    UnknownUsernameError,
    UsernameTakenError,
    WrongPasswordError,
)
from credentia.mail.dispatcher import NotificationDispatcher
from credentia.mail.templates import (
    password_reset_confirmation,
    password_reset_email,
    verification_email,
)
from credentia.services.account_store import AccountStore

logger = structlog.get_logger()


@dataclass
class AuthResult:
    account: Account
    session_token: str


class CredentialService:
    """Register, verify, authenticate, and reset passwords."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        tokens: TokenIssuer,
        notifier: NotificationDispatcher,
        settings: Settings,
    ):
        self.db = db
        self.store = AccountStore(db)
        self.tokens = tokens
        self.notifier = notifier
        self.settings = settings

    @property
    def reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.reset_token_expire_minutes)

    # ─── Register ───────────────────────────────────────

    async def register(
        self,
        *,
        username: str,
        email: str,
        password: str,
        name: Optional[str] = None,
    ) -> Account:
        """Create a Pending account and send the verification link.

        Learn: The two lookups give friendly errors in the common case.
        They are not what keeps duplicates out — two concurrent requests
        can both pass them. The unique constraints on username and email
        are authoritative; the store turns a violation into the same
        UsernameTakenError / EmailTakenError.
        """
        log = logger.bind(username=username)

        if await self.store.find_by_username(username):
            log.info("account.register_rejected", reason="username_taken")
            raise UsernameTakenError()
        if await self.store.find_by_email(email):
            log.info("account.register_rejected", reason="email_taken")
            raise EmailTakenError()

        password_hash = await self._hash(password)
        account = Account(
            username=username,
            email=email,
            name=name,
            password_hash=password_hash,
            verified=False,
            verification_code=self.tokens.issue_one_time_token(),
        )
        try:
            await self.store.insert(account)
            await self.store.commit()
        except (UsernameTakenError, EmailTakenError) as e:
            log.info("account.register_rejected", reason=e.kind, race=True)
            raise
        await self.store.refresh(account)
        log.info("account.registered", account_id=str(account.id))

        self.notifier.dispatch(
            verification_email(
                to=account.email,
                username=account.username,
                link=self._link("verify-now", account.verification_code),
            )
        )
        return account

    # ─── Verify ─────────────────────────────────────────

    async def verify_account(self, code: str) -> Account:
        """Spend a verification code. Pending → Verified, exactly once.

        Unknown, already used, and never issued codes all raise the same
        InvalidVerificationTokenError.
        """
        account = await self.store.find_by_verification_code(code) if code else None
        if account is None:
            logger.info("account.verify_rejected", reason="unknown_code")
            raise InvalidVerificationTokenError()

        if not await self.store.consume_verification_code(account.id, code):
            # Someone else spent it between our read and our write.
            await self.store.rollback()
            logger.info(
                "account.verify_rejected", reason="already_consumed",
                account_id=str(account.id),
            )
            raise InvalidVerificationTokenError()

        await self.store.commit()
        await self.store.refresh(account)
        logger.info("account.verified", account_id=str(account.id))
        return account

    # ─── Authenticate ───────────────────────────────────

    async def authenticate(self, *, username: str, password: str) -> AuthResult:
        """Check a username/password pair and mint a session token.

        Learn: Read-only against the store. Pending accounts are NOT
        blocked here; verification is soft.
        """
        account = await self.store.find_by_username(username)
        if account is None:
            logger.info("auth.unknown_username", username=username)
            raise UnknownUsernameError()

        if not await asyncio.to_thread(
            verify_password, password, account.password_hash
        ):
            logger.info("auth.wrong_password", account_id=str(account.id))
            raise WrongPasswordError()

        token = self.tokens.issue_session_token(account.id, username=account.username)
        logger.info(
            "auth.authenticated", account_id=str(account.id),
            state=account.state.value,
        )
        return AuthResult(account=account, session_token=token)

    async def get_account(self, account_id: uuid.UUID) -> Account:
        account = await self.store.get(account_id)
        if account is None:
            # Valid signature for an account that no longer resolves.
            logger.warning("session.unknown_account", account_id=str(account_id))
            raise InvalidSessionTokenError()
        return account

    # ─── Password reset ─────────────────────────────────

    async def request_password_reset(self, email: str) -> Account:
        """Store a fresh reset token (replacing any pending one) and mail it.

        Learn: Reveals whether the email exists (EmailNotFoundError), so
        the client can say "no account with this email". Returning a
        uniform acknowledgement would hide that.
        """
        account = await self.store.find_by_email(email)
        if account is None:
            logger.info("reset.unknown_email")
            raise EmailNotFoundError()

        token = self.tokens.issue_one_time_token()
        expires_at = utcnow() + self.reset_ttl
        if not await self.store.set_reset_token(account.id, token, expires_at):
            await self.store.rollback()
            raise EmailNotFoundError()
        await self.store.commit()
        await self.store.refresh(account)
        logger.info(
            "reset.requested", account_id=str(account.id),
            expires_at=expires_at.isoformat(),
        )

        self.notifier.dispatch(
            password_reset_email(
                to=account.email,
                username=account.username,
                link=self._link("reset-password-now", token),
                expires_minutes=self.settings.reset_token_expire_minutes,
            )
        )
        return account

    async def validate_reset_token(self, token: str) -> bool:
        """True if the token belongs to an account and has not expired."""
        if not token:
            return False
        return await self.store.find_by_valid_reset_token(token, utcnow()) is not None

    async def confirm_password_reset(self, *, token: str, password: str) -> Account:
        """Spend a reset token and replace the password hash.

        Learn: Validity is re-checked here even if validate_reset_token
        was called moments ago — the token may have expired since, or a
        concurrent request may have spent it. The final word is the
        conditional UPDATE, which repeats both conditions.
        """
        account = (
            await self.store.find_by_valid_reset_token(token, utcnow()) if token else None
        )
        if account is None:
            logger.info("reset.rejected", reason="invalid_or_expired")
            raise InvalidResetTokenError()

        password_hash = await self._hash(password)
        if not await self.store.consume_reset_token(
            account.id, token, password_hash, utcnow()
        ):
            await self.store.rollback()
            logger.info(
                "reset.rejected", reason="consumed_or_expired",
                account_id=str(account.id),
            )
            raise InvalidResetTokenError()

        await self.store.commit()
        await self.store.refresh(account)
        logger.info("reset.completed", account_id=str(account.id))

        self.notifier.dispatch(
            password_reset_confirmation(to=account.email, username=account.username)
        )
        return account

    # ─── Helpers ────────────────────────────────────────

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(
            hash_password, password, self.settings.bcrypt_rounds
        )

    def _link(self, route: str, token: str) -> str:
        return f"{self.settings.public_base_url}/api/v1/users/{route}/{token}"
