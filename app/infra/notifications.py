"""
Notification Service

Best-effort announcement of bookings and cancellations to operator chats.

announce() only enqueues; a background worker formats each notice and sends
it to every channel independently. A failing channel is logged and skipped.
Nothing here raises back into the booking flow.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from app.config import settings
from app.core.i18n import translate

# Logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingNotice:
    """Booking event sent to operator channels."""

    kind: str  # "confirmed" or "cancelled"
    appointment_id: int
    service_name: str
    when: str  # Slot start, already formatted in the business timezone
    chat_id: str
    requester: Optional[str] = None


class NotificationChannel(Protocol):
    """Destination for operator notices."""

    name: str

    async def send(self, text: str) -> None:
        ...


class TelegramChannel:
    """Sends notices to a Telegram chat through the bot."""

    def __init__(self, bot, chat_id: str):
        """Initialize channel.

        Args:
            bot: telegram.Bot instance
            chat_id: Operator chat or group ID
        """
        self._bot = bot
        self.chat_id = chat_id
        self.name = f"telegram:{chat_id}"

    async def send(self, text: str) -> None:
        await self._bot.send_message(chat_id=self.chat_id, text=text)


def format_notice(notice: BookingNotice, lang: Optional[str] = None) -> str:
    """Render a notice as operator-facing text.

    Args:
        notice: Booking notice
        lang: Locale (default: default_locale)

    Returns:
        Multi-line message text
    """
    lang = lang or settings.default_locale
    header_key = "admin.notifyHeader" if notice.kind == "confirmed" else "admin.cancelHeader"
    user = notice.requester or notice.chat_id
    if notice.requester:
        user = f"{notice.requester} ({notice.chat_id})"

    return "\n".join([
        translate(lang, header_key),
        f"{translate(lang, 'admin.user')}: {user}",
        f"{translate(lang, 'admin.service')}: {notice.service_name}",
        f"{translate(lang, 'admin.time')}: {notice.when}",
    ])


class NotificationService:
    """
    Queue-backed fan-out to operator channels.

    Usage:
        service = NotificationService([TelegramChannel(bot, "-100123")])
        await service.start()
        service.announce(notice)  # never blocks, never raises
        await service.stop()
    """

    def __init__(
        self,
        channels: Optional[Sequence[NotificationChannel]] = None,
        maxsize: Optional[int] = None,
        formatter: Callable[[BookingNotice], str] = format_notice,
    ):
        """Initialize service.

        Args:
            channels: Operator channels (may be empty)
            maxsize: Queue capacity (default: notification_queue_size)
            formatter: Turns a notice into message text
        """
        self._channels: list[NotificationChannel] = list(channels or [])
        self._queue: asyncio.Queue[BookingNotice] = asyncio.Queue(
            maxsize=maxsize or settings.notification_queue_size
        )
        self._formatter = formatter
        self._worker: Optional[asyncio.Task] = None

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._channels)

    def set_channels(self, channels: Sequence[NotificationChannel]) -> None:
        """Replace the channel list."""
        self._channels = list(channels)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def announce(self, notice: BookingNotice) -> None:
        """Enqueue a notice without waiting for delivery."""
        if not self._channels:
            logger.debug(f"No notification channels, dropping {notice.kind} notice")
            return
        try:
            self._queue.put_nowait(notice)
        except asyncio.QueueFull:
            logger.warning(
                f"Notification queue full, dropping {notice.kind} notice "
                f"for appointment {notice.appointment_id}"
            )

    async def start(self) -> None:
        """Start the delivery worker."""
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._run(), name="notification-fanout")
        logger.info(f"Notification service started with {len(self._channels)} channel(s)")

    async def stop(self, timeout: float = 5.0) -> None:
        """Drain pending notices (up to timeout) and stop the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping {self._queue.qsize()} undelivered notice(s) on shutdown")

        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification service stopped")

    async def _run(self) -> None:
        while True:
            notice = await self._queue.get()
            try:
                await self.deliver(notice)
            finally:
                self._queue.task_done()

    async def deliver(self, notice: BookingNotice) -> int:
        """Send a notice to every channel.

        Returns:
            Number of channels that accepted the message
        """
        try:
            text = self._formatter(notice)
        except Exception:
            logger.exception(f"Failed to format {notice.kind} notice")
            return 0

        delivered = 0
        for channel in self._channels:
            try:
                await channel.send(text)
                delivered += 1
            except Exception as e:
                logger.warning(f"Notification to {channel.name} failed: {e}")
        return delivered


# Singleton
_service: Optional[NotificationService] = None


def get_notification_service() -> NotificationService:
    """Get singleton NotificationService."""
    global _service
    if _service is None:
        _service = NotificationService()
    return _service
