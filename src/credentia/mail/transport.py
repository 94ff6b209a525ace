"""Mail transports.

Learn: A transport knows how to hand one message to something that
delivers email. Two ship here:

- ConsoleMailer: logs the message with token links redacted (development only)
- HttpMailer: JSON POST to a transactional mail API (Resend-style)

Transports raise DeliveryError when a send fails. Retrying, queueing and
SMTP are out of scope.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import httpx
import structlog

from credentia.config import Settings
from credentia.errors import DeliveryError

logger = structlog.get_logger()

# One-time tokens ride in the last path segment of these links.
_TOKEN_LINK = re.compile(r'(/(?:verify-now|reset-password-now)/)[^\s/"<]+')


def redact_links(text: str) -> str:
    """Replace the token in verification and reset links with a placeholder."""
    return _TOKEN_LINK.sub(r"\1<redacted>", text)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    text: str
    html: str


class Mailer(ABC):
    """Something that can deliver a MailMessage."""

    def __init__(self, sender: str):
        self.sender = sender

    @abstractmethod
    async def send(self, message: MailMessage) -> None:
        """Deliver one message. Raises DeliveryError on failure."""

    async def aclose(self) -> None:
        pass


class ConsoleMailer(Mailer):
    """Logs outgoing mail instead of sending it.

    Token links are redacted, so the log shows that a link went out but
    not the link itself.
    """

    async def send(self, message: MailMessage) -> None:
        logger.info(
            "mail.console",
            sender=self.sender,
            to=message.to,
            subject=message.subject,
            text=redact_links(message.text),
        )


class HttpMailer(Mailer):
    """Sends mail through an HTTP mail API with a bearer key."""

    def __init__(
        self,
        sender: str,
        *,
        api_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(sender)
        self.api_url = api_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}

    async def send(self, message: MailMessage) -> None:
        try:
            resp = await self._client.post(
                self.api_url,
                headers=self._headers,
                json={
                    "from": self.sender,
                    "to": message.to,
                    "subject": message.subject,
                    "text": message.text,
                    "html": message.html,
                },
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"Mail API returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DeliveryError(f"Mail API unreachable: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def format_sender(name: str, address: str) -> str:
    return f'"{name}" <{address}>'


def build_mailer(settings: Settings) -> Mailer:
    """Pick the transport named by CREDENTIA_MAIL_BACKEND."""
    sender = format_sender(settings.sender_name, settings.sender_mail)
    if settings.mail_backend == "http":
        return HttpMailer(
            sender,
            api_url=settings.mail_api_url,
            api_key=settings.mail_api_key,
            timeout=settings.mail_timeout_seconds,
        )
    return ConsoleMailer(sender)
