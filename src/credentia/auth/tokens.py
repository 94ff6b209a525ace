"""Token issuing and verification.

Learn: Two unrelated kinds of token live here.

- One-time tokens (email verification, password reset) are plain random
  hex strings. They carry no structure and no expiry of their own; the
  account row stores them (and, for resets, a paired expiry timestamp).
- Session tokens are JWTs signed with the process-wide secret. They carry
  the account id plus iat/exp, so any service holding the secret can
  check them without a database round-trip.

Session verification fails closed: a bad signature, a malformed payload,
a missing claim, or an expiry in the past all come back as None.
"""

import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog

from credentia.config import Settings

logger = structlog.get_logger()

# 20 random bytes → 40 hex chars, 160 bits of entropy.
ONE_TIME_TOKEN_BYTES = 20

SESSION_TOKEN_TYPE = "session"


def issue_one_time_token() -> str:
    """Mint a fresh verification / reset token. The caller persists it."""
    return secrets.token_hex(ONE_TIME_TOKEN_BYTES)


class TokenIssuer:
    """Signs and verifies session tokens with a fixed key and lifetime."""

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        session_ttl: timedelta = timedelta(days=1),
    ):
        self._secret = secret
        self.algorithm = algorithm
        self.session_ttl = session_ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenIssuer":
        return cls(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            session_ttl=timedelta(minutes=settings.session_token_expire_minutes),
        )

    def issue_one_time_token(self) -> str:
        return issue_one_time_token()

    def issue_session_token(
        self,
        account_id: uuid.UUID,
        *,
        username: Optional[str] = None,
        expires_in: Optional[timedelta] = None,
    ) -> str:
        """Create a signed session token for an account."""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(account_id),
            "type": SESSION_TOKEN_TYPE,
            "iat": now,
            "exp": now + (expires_in if expires_in is not None else self.session_ttl),
        }
        if username:
            payload["username"] = username
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify_session_token(self, token: Optional[str]) -> Optional[uuid.UUID]:
        """Return the account id a session token was issued for, or None.

        Never raises for bad input.
        """
        if not token or not isinstance(token, str):
            return None
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("session.token_expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.info("session.token_invalid", reason=str(e))
            return None

        if payload.get("type") != SESSION_TOKEN_TYPE:
            logger.info("session.token_invalid", reason="wrong token type")
            return None
        try:
            return uuid.UUID(str(payload["sub"]))
        except ValueError:
            logger.info("session.token_invalid", reason="malformed subject")
            return None
