"""Fire-and-forget delivery of transactional mail.

Learn: dispatch() schedules the send on the running event loop and returns
immediately. The task set keeps a strong reference to each in-flight
delivery (asyncio only holds weak ones) until it finishes. drain() lets
shutdown and tests wait for everything that was dispatched.
"""

import asyncio

import structlog

from credentia.errors import DeliveryError
from credentia.mail.transport import Mailer, MailMessage

logger = structlog.get_logger()


class NotificationDispatcher:
    """Best-effort mail delivery; failures are logged and discarded."""

    def __init__(self, mailer: Mailer):
        self.mailer = mailer
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, message: MailMessage) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def _deliver(self, message: MailMessage) -> None:
        try:
            await self.mailer.send(message)
        except DeliveryError as e:
            logger.warning(
                "mail.delivery_failed", to=message.to, subject=message.subject,
                error=e.message,
            )
            return
        except Exception:
            logger.exception(
                "mail.delivery_failed", to=message.to, subject=message.subject
            )
            return
        logger.info("mail.sent", to=message.to, subject=message.subject)

    async def drain(self) -> None:
        """Wait for every dispatched message to finish (sent or failed)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self.mailer.aclose()
