"""create accounts table

Learn: One table holds the whole credential lifecycle. Uniqueness of
username and email is enforced here, so concurrent registrations race
on the constraint instead of on the application's pre-check reads.

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 09:12:44.512307
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("verification_code", sa.String(length=64), nullable=True),
        sa.Column("reset_password_token", sa.String(length=64), nullable=True),
        sa.Column("reset_password_expires_in", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username", name="uq_accounts_username"),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
        sa.UniqueConstraint("verification_code", name="uq_accounts_verification_code"),
        sa.CheckConstraint(
            "(reset_password_token IS NULL) = (reset_password_expires_in IS NULL)",
            name="ck_accounts_reset_token_pair",
        ),
    )
    op.create_index(
        "ix_accounts_reset_password_token", "accounts", ["reset_password_token"]
    )


def downgrade() -> None:
    op.drop_index("ix_accounts_reset_password_token", table_name="accounts")
    op.drop_table("accounts")
