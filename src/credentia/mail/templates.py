"""Email bodies for the credential lifecycle."""

from html import escape

from credentia.mail.transport import MailMessage


def verification_email(*, to: str, username: str, link: str) -> MailMessage:
    name = escape(username)
    href = escape(link, quote=True)
    return MailMessage(
        to=to,
        subject="Verify Account",
        text=(
            f"Hello, {username}\n\n"
            f"Please open the following link to verify your account:\n\n{link}\n"
        ),
        html=(
            f"<h1>Hello, {name}</h1>"
            "<p>Please click the following link to verify your account</p>"
            f'<a href="{href}">Verify Now</a>'
        ),
    )


def password_reset_email(
    *, to: str, username: str, link: str, expires_minutes: int
) -> MailMessage:
    name = escape(username)
    href = escape(link, quote=True)
    return MailMessage(
        to=to,
        subject="Reset Password",
        text=(
            f"Hello, {username}\n\n"
            f"Open the following link to reset your password:\n\n{link}\n\n"
            f"This link expires in {expires_minutes} minutes. "
            "If you didn't request this, you can safely ignore this email."
        ),
        html=(
            f"<h1>Hello, {name}</h1>"
            "<p>Please click the following link to reset your password.</p>"
            f"<p>This link expires in {expires_minutes} minutes. If you did not "
            "request a password reset, ignore this email.</p>"
            f'<a href="{href}">Reset Password Now</a>'
        ),
    )


def password_reset_confirmation(*, to: str, username: str) -> MailMessage:
    name = escape(username)
    return MailMessage(
        to=to,
        subject="Password Reset Successful",
        text=(
            f"Hello, {username}\n\n"
            "Your password was reset successfully. If this wasn't you, "
            "request a new password reset right away."
        ),
        html=(
            f"<h1>Hello, {name}</h1>"
            "<p>Your password reset is successful. If you did not make this "
            "change, request a new password reset immediately.</p>"
        ),
    )
