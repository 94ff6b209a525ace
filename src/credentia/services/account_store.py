"""Account store — the persistence boundary for accounts.

Learn: Every read is a single-row lookup on a unique (or indexed) key.
Every write that spends a one-time token is a conditional UPDATE whose
WHERE clause repeats the precondition (token matches, not expired). The
database applies the check and the write as one statement, so when two
requests race with the same token exactly one UPDATE matches a row and
the other sees rowcount == 0.

Driver errors are translated here: unique violations become
UsernameTakenError / EmailTakenError, anything else from SQLAlchemy
becomes PersistenceError.
"""

import functools
import uuid
from datetime import datetime
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from credentia.db.models import Account, utcnow
from credentia.errors import (
    EmailTakenError,
    PersistenceError,
    UsernameTakenError,
)

logger = structlog.get_logger()


def _translate_errors(method):
    """Turn SQLAlchemy failures into PersistenceError."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error(
                "store.failure", operation=method.__name__, error=str(e)
            )
            raise PersistenceError() from e

    return wrapper


# PostgreSQL names the constraint; SQLite names table.column. Either comes
# before any echoed key value in the driver message.
_CONFLICT_MARKERS = (
    ("uq_accounts_username", UsernameTakenError),
    ("uq_accounts_email", EmailTakenError),
    ("accounts.username", UsernameTakenError),
    ("accounts.email", EmailTakenError),
)


def _conflict_from(exc: IntegrityError) -> Exception:
    """Map a unique violation to the field that collided.

    The earliest marker in the message wins, so a colliding value that
    happens to contain "username" cannot misclassify an email conflict.
    """
    detail = str(exc.orig).lower()
    hits = [
        (detail.find(marker), error)
        for marker, error in _CONFLICT_MARKERS
        if marker in detail
    ]
    if not hits:
        return PersistenceError()
    _, error = min(hits, key=lambda hit: hit[0])
    return error()


class AccountStore:
    """Async data access for the accounts table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Reads ──────────────────────────────────────────

    @_translate_errors
    async def get(self, account_id: uuid.UUID) -> Optional[Account]:
        return await self.db.get(Account, account_id)

    @_translate_errors
    async def find_by_username(self, username: str) -> Optional[Account]:
        return await self._first(select(Account).where(Account.username == username))

    @_translate_errors
    async def find_by_email(self, email: str) -> Optional[Account]:
        return await self._first(select(Account).where(Account.email == email))

    @_translate_errors
    async def find_by_verification_code(self, code: str) -> Optional[Account]:
        return await self._first(
            select(Account).where(Account.verification_code == code)
        )

    @_translate_errors
    async def find_by_valid_reset_token(
        self, token: str, now: datetime
    ) -> Optional[Account]:
        """Account holding this reset token, if the token has not expired."""
        return await self._first(
            select(Account).where(
                Account.reset_password_token == token,
                Account.reset_password_expires_in > now,
            )
        )

    async def _first(self, q) -> Optional[Account]:
        result = await self.db.execute(q)
        return result.scalars().first()

    # ─── Writes ─────────────────────────────────────────

    @_translate_errors
    async def insert(self, account: Account) -> Account:
        """Insert a new account; the unique constraints decide duplicates."""
        self.db.add(account)
        try:
            await self.db.flush()
        except IntegrityError as e:
            await self.db.rollback()
            raise _conflict_from(e) from e
        return account

    @_translate_errors
    async def consume_verification_code(
        self, account_id: uuid.UUID, code: str
    ) -> bool:
        """Mark verified and clear the code, only if the code still matches."""
        result = await self.db.execute(
            update(Account)
            .where(
                Account.id == account_id,
                Account.verification_code == code,
                Account.verified.is_(False),
            )
            .values(verified=True, verification_code=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @_translate_errors
    async def set_reset_token(
        self, account_id: uuid.UUID, token: str, expires_at: datetime
    ) -> bool:
        """Store a reset token with its expiry, replacing any earlier one."""
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(
                reset_password_token=token,
                reset_password_expires_in=expires_at,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @_translate_errors
    async def consume_reset_token(
        self,
        account_id: uuid.UUID,
        token: str,
        password_hash: str,
        now: datetime,
    ) -> bool:
        """Swap in the new hash and clear the token pair, if still valid."""
        result = await self.db.execute(
            update(Account)
            .where(
                Account.id == account_id,
                Account.reset_password_token == token,
                Account.reset_password_expires_in > now,
            )
            .values(
                password_hash=password_hash,
                reset_password_token=None,
                reset_password_expires_in=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ─── Transaction control ────────────────────────────

    @_translate_errors
    async def commit(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise _conflict_from(e) from e

    @_translate_errors
    async def refresh(self, account: Account) -> Account:
        await self.db.refresh(account)
        return account

    @_translate_errors
    async def rollback(self) -> None:
        await self.db.rollback()
