"""Tests for operator notification fan-out."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.infra.notifications import (
    BookingNotice,
    NotificationService,
    TelegramChannel,
    format_notice,
)


class RecordingChannel:
    """Channel that keeps what it was sent."""

    def __init__(self, name: str = "recording"):
        self.name = name
        self.sent: list[str] = []

    async def send(self, text: str) -> None:
        self.sent.append(text)


class FailingChannel:
    """Channel whose transport is down."""

    name = "failing"

    async def send(self, text: str) -> None:
        raise ConnectionError("channel down")


@pytest.fixture
def notice():
    return BookingNotice(
        kind="confirmed",
        appointment_id=1,
        service_name="Haircut",
        when="2030-05-01 15:00",
        chat_id="1001",
        requester="@alice",
    )


class TestFormatNotice:
    """Test operator message text."""

    def test_confirmed(self, notice):
        text = format_notice(notice, lang="en")

        assert "@alice (1001)" in text
        assert "Haircut" in text
        assert "2030-05-01 15:00" in text

    def test_cancelled_header_differs(self, notice):
        cancelled = BookingNotice(
            kind="cancelled",
            appointment_id=1,
            service_name="Haircut",
            when="2030-05-01 15:00",
            chat_id="1001",
        )

        confirmed_text = format_notice(notice, lang="en")
        cancelled_text = format_notice(cancelled, lang="en")

        assert confirmed_text.splitlines()[0] != cancelled_text.splitlines()[0]
        assert "1001" in cancelled_text


class TestNotificationService:
    """Test queued delivery."""

    @pytest.mark.asyncio
    async def test_delivered_to_all_channels(self, notice):
        """Test every channel receives the notice."""
        first, second = RecordingChannel("a"), RecordingChannel("b")
        service = NotificationService([first, second])

        await service.start()
        service.announce(notice)
        await service.stop()

        assert len(first.sent) == 1
        assert first.sent == second.sent

    @pytest.mark.asyncio
    async def test_failing_channel_isolated(self, notice):
        """Test one failing channel does not block the others."""
        healthy = RecordingChannel()
        service = NotificationService([FailingChannel(), healthy])

        delivered = await service.deliver(notice)

        assert delivered == 1
        assert len(healthy.sent) == 1

    @pytest.mark.asyncio
    async def test_worker_survives_failures(self, notice):
        """Test the worker keeps delivering after a channel error."""
        healthy = RecordingChannel()
        service = NotificationService([FailingChannel(), healthy])

        await service.start()
        service.announce(notice)
        service.announce(notice)
        await service.stop()

        assert len(healthy.sent) == 2
        assert not service.is_running

    @pytest.mark.asyncio
    async def test_full_queue_drops(self, notice):
        """Test announce never raises when the queue is full."""
        service = NotificationService([RecordingChannel()], maxsize=1)

        service.announce(notice)
        service.announce(notice)

        assert service._queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_no_channels(self, notice):
        """Test notices are dropped without channels."""
        service = NotificationService([])

        service.announce(notice)

        assert service._queue.qsize() == 0

    @pytest.mark.asyncio
    async def test_announce_does_not_wait(self, notice):
        """Test announce returns before a slow channel finishes."""
        gate = asyncio.Event()

        class SlowChannel:
            name = "slow"

            async def send(self, text):
                await gate.wait()

        service = NotificationService([SlowChannel()])
        await service.start()

        service.announce(notice)
        await asyncio.sleep(0)

        gate.set()
        await service.stop()

    @pytest.mark.asyncio
    async def test_telegram_channel(self):
        """Test the Telegram channel posts to its chat."""
        bot = AsyncMock()
        channel = TelegramChannel(bot, "-100123")

        await channel.send("hello")

        bot.send_message.assert_awaited_once_with(chat_id="-100123", text="hello")
        assert channel.name == "telegram:-100123"
