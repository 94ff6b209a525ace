"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
The Account row is the whole persisted footprint of the credential
lifecycle. The invariants that can be stated in SQL are stated in SQL:

- username and email are unique (the authoritative duplicate check)
- a verification code can only belong to one account
- a reset token and its expiry are both set or both null

Uses the portable Uuid type so the same models run on PostgreSQL in
production and on SQLite in tests.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    false,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AccountState(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"


class Account(Base):
    """A registered identity.

    Learn: `verified` starts False and flips to True exactly once, in the
    same UPDATE that clears `verification_code`. `password_hash` is only
    ever written with a fresh bcrypt hash, never copied from input.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("username", name="uq_accounts_username"),
        UniqueConstraint("email", name="uq_accounts_email"),
        UniqueConstraint("verification_code", name="uq_accounts_verification_code"),
        CheckConstraint(
            "(reset_password_token IS NULL) = (reset_password_expires_in IS NULL)",
            name="ck_accounts_reset_token_pair",
        ),
        Index("ix_accounts_reset_password_token", "reset_password_token"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=new_uuid
    )
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    verification_code: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    reset_password_token: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True
    )
    reset_password_expires_in: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )

    @property
    def state(self) -> AccountState:
        return AccountState.VERIFIED if self.verified else AccountState.PENDING

    def has_pending_reset(self, now: Optional[datetime] = None) -> bool:
        """True if a reset token is set and its expiry is still ahead."""
        if self.reset_password_token is None or self.reset_password_expires_in is None:
            return False
        return as_utc(self.reset_password_expires_in) > (now or utcnow())

    def __repr__(self) -> str:
        # never include password_hash or token values
        return f"<Account {self.id} {self.username!r} {self.state.value}>"
