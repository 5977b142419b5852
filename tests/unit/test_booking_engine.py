"""Tests for booking confirmation and cancellation."""

import asyncio
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from app.core.errors import NotFoundOrNotOwnedError, SlotNotFoundError, SlotTakenError
from app.core.scheduling.booking import BookingEngine, CancellationHandler
from app.models.database import Appointment, AppointmentStatus


async def _appointment_count(factory, slot_id: int) -> int:
    async with factory() as db:
        result = await db.execute(
            select(func.count()).select_from(Appointment).where(Appointment.slot_id == slot_id)
        )
        return result.scalar_one()


class TestBookingEngine:
    """Test exactly-once slot confirmation."""

    @pytest.fixture
    def notifier(self):
        return MagicMock()

    @pytest.fixture
    def engine(self, seeded, notifier):
        return BookingEngine(session_factory=seeded, notifier=notifier)

    @pytest.mark.asyncio
    async def test_confirm(self, engine, notifier):
        """Test a free slot becomes a confirmed appointment."""
        confirmation = await engine.confirm(77, "1001", requester="@alice")

        assert confirmation.slot_id == 77
        assert confirmation.chat_id == "1001"
        assert confirmation.status == AppointmentStatus.CONFIRMED
        assert confirmation.service.name == "Haircut"
        assert confirmation.when == "2030-05-01 15:00"

        notifier.announce.assert_called_once()
        notice = notifier.announce.call_args[0][0]
        assert notice.kind == "confirmed"
        assert notice.appointment_id == confirmation.appointment_id
        assert notice.requester == "@alice"

    @pytest.mark.asyncio
    async def test_confirm_twice_rejected(self, engine, seeded, notifier):
        """Test repeating a successful confirm never books twice."""
        await engine.confirm(77, "1001")

        with pytest.raises(SlotTakenError):
            await engine.confirm(77, "1001")

        assert await _appointment_count(seeded, 77) == 1
        assert notifier.announce.call_count == 1

    @pytest.mark.asyncio
    async def test_concurrent_confirms(self, engine, seeded):
        """Test two chats racing for one slot get one winner."""
        results = await asyncio.gather(
            engine.confirm(77, "1001"),
            engine.confirm(77, "2002"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]

        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], SlotTakenError)
        assert await _appointment_count(seeded, 77) == 1

    @pytest.mark.asyncio
    async def test_missing_slot(self, engine, notifier):
        """Test confirming an unknown slot."""
        with pytest.raises(SlotNotFoundError) as exc_info:
            await engine.confirm(999, "1001")

        assert exc_info.value.message_key == "errors.slotNotFound"
        notifier.announce.assert_not_called()


class TestCancellationHandler:
    """Test owner-only cancellation."""

    @pytest.fixture
    def notifier(self):
        return MagicMock()

    @pytest.fixture
    def engine(self, seeded):
        return BookingEngine(session_factory=seeded, notifier=MagicMock())

    @pytest.fixture
    def handler(self, seeded, notifier):
        return CancellationHandler(session_factory=seeded, notifier=notifier)

    @pytest.mark.asyncio
    async def test_owner_cancels(self, engine, handler, notifier):
        """Test the booking chat can cancel."""
        booked = await engine.confirm(77, "1001")

        cancelled = await handler.cancel(booked.appointment_id, "1001")

        assert cancelled.status == AppointmentStatus.CANCELLED
        assert cancelled.slot_id == 77
        notice = notifier.announce.call_args[0][0]
        assert notice.kind == "cancelled"

    @pytest.mark.asyncio
    async def test_other_chat_rejected(self, engine, handler, seeded, notifier):
        """Test another chat cannot cancel and the appointment stays confirmed."""
        booked = await engine.confirm(77, "1001")

        with pytest.raises(NotFoundOrNotOwnedError):
            await handler.cancel(booked.appointment_id, "2002")

        async with seeded() as db:
            appointment = await db.get(Appointment, booked.appointment_id)
            assert appointment.status == AppointmentStatus.CONFIRMED
            assert appointment.cancelled_at is None
        notifier.announce.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_same_error(self, handler):
        """Test a missing appointment is indistinguishable from a foreign one."""
        with pytest.raises(NotFoundOrNotOwnedError) as exc_info:
            await handler.cancel(999, "1001")

        assert exc_info.value.message_key == "my.appointmentNotFound"

    @pytest.mark.asyncio
    async def test_cancel_twice(self, engine, handler, notifier):
        """Test repeated cancels are idempotent and notify once."""
        booked = await engine.confirm(77, "1001")

        await handler.cancel(booked.appointment_id, "1001")
        again = await handler.cancel(booked.appointment_id, "1001")

        assert again.status == AppointmentStatus.CANCELLED
        assert notifier.announce.call_count == 1

    @pytest.mark.asyncio
    async def test_cancelled_slot_stays_taken(self, engine, handler):
        """Test cancellation does not release the slot."""
        booked = await engine.confirm(77, "1001")
        await handler.cancel(booked.appointment_id, "1001")

        with pytest.raises(SlotTakenError):
            await engine.confirm(77, "2002")

    @pytest.mark.asyncio
    async def test_list_confirmed(self, engine, handler):
        """Test listing returns only the chat's confirmed appointments in slot order."""
        late = await engine.confirm(77, "1001")
        early = await engine.confirm(10, "1001")
        dropped = await engine.confirm(11, "1001")
        await engine.confirm(12, "2002")
        await handler.cancel(dropped.appointment_id, "1001")

        listed = await handler.list_confirmed("1001")

        assert [a.appointment_id for a in listed] == [early.appointment_id, late.appointment_id]

    @pytest.mark.asyncio
    async def test_list_limit(self, engine, handler):
        await engine.confirm(10, "1001")
        await engine.confirm(11, "1001")

        assert len(await handler.list_confirmed("1001", limit=1)) == 1
