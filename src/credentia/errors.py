"""Credential error taxonomy.

Learn: Every failure that can leave a lifecycle operation is one of these.
Each class carries a machine-readable `kind`, the HTTP status the API
layer maps it to, and a human-readable default message. Raw driver or
transport errors never cross the service boundary unclassified:

- ConflictError (409): username or email already registered
- NotFoundError (404): unknown username, email, or verification link
- UnauthorizedError (401): wrong password, bad reset token, bad session
- PersistenceError (500): the account store failed
- DeliveryError (502): mail transport failed (recovered, never surfaced)
"""

from typing import Optional


class CredentialError(Exception):
    """Base class for all credential lifecycle errors."""

    kind = "internal"
    status_code = 500
    default_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ─── Conflict ───────────────────────────────────────────


class ConflictError(CredentialError):
    kind = "conflict"
    status_code = 409
    default_message = "Account already exists."


class UsernameTakenError(ConflictError):
    default_message = "Username is already taken."


class EmailTakenError(ConflictError):
    default_message = (
        "Email is already registered. Did you forget the password. Try resetting it."
    )


# ─── Not found ──────────────────────────────────────────


class NotFoundError(CredentialError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found."


class UnknownUsernameError(NotFoundError):
    default_message = "Username is not found."


class EmailNotFoundError(NotFoundError):
    default_message = "Unable to find the account with this email."


class InvalidVerificationTokenError(NotFoundError):
    """Absent, already consumed, or never issued — deliberately indistinguishable."""

    default_message = "Invalid or expired verification link."


# ─── Unauthorized ───────────────────────────────────────


class UnauthorizedError(CredentialError):
    kind = "unauthorized"
    status_code = 401
    default_message = "Unauthorized."


class WrongPasswordError(UnauthorizedError):
    default_message = "Incorrect password."


class InvalidResetTokenError(UnauthorizedError):
    default_message = "Password reset token is invalid or has expired."


class InvalidSessionTokenError(UnauthorizedError):
    default_message = "Invalid or expired session token."


# ─── Infrastructure ─────────────────────────────────────


class PersistenceError(CredentialError):
    kind = "persistence_failure"
    status_code = 500
    default_message = "Something went wrong."


class DeliveryError(CredentialError):
    kind = "delivery_failure"
    status_code = 502
    default_message = "Unable to deliver the email."
