"""End-to-end conversation tests through the dispatcher."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.config import settings
from app.core.errors import NotFoundOrNotOwnedError, SlotTakenError
from app.core.i18n import LanguageResolver, translate
from app.core.scheduling import (
    BookingDispatcher,
    BookingEngine,
    CalendarHandoff,
    CancellationHandler,
    ConversationFlow,
    InboundContext,
    ResponseGenerator,
    ServiceCatalog,
    SlotQueryEngine,
)
from app.core.scheduling.events import (
    BookRequested,
    CancelRequested,
    ConfirmRequested,
    DateConfirmed,
    HandoffRejected,
    LanguageChangeRequested,
    MyAppointmentsRequested,
    ServiceSelected,
    SlotSelected,
    decode_command,
)
from app.core.session import BookingState, SessionManager
from app.infra.notifications import NotificationService
from app.models.database import Appointment, AppointmentStatus
from tests.conftest import BOOKING_DAY

DAY = BOOKING_DAY.date()


@pytest.fixture(autouse=True)
def utc_business_day():
    with patch.object(settings, "business_timezone", "UTC"):
        yield


@pytest.fixture
def dispatcher(seeded, no_redis):
    """Dispatcher wired to the test database with in-memory sessions."""
    notifier = NotificationService([])
    return BookingDispatcher(
        session_manager=SessionManager(),
        language_resolver=LanguageResolver(default_locale="en"),
        flow_manager=ConversationFlow(),
        catalog=ServiceCatalog(session_factory=seeded),
        slot_engine=SlotQueryEngine(session_factory=seeded),
        handoff=CalendarHandoff(
            calendar_url="https://example.com/webapp/calendar",
            cutoff_minutes=30,
        ),
        booking_engine=BookingEngine(session_factory=seeded, notifier=notifier),
        cancellation_handler=CancellationHandler(session_factory=seeded, notifier=notifier),
        response_generator=ResponseGenerator(),
    )


def private(chat_id: str = "1001", **kwargs) -> InboundContext:
    return InboundContext(chat_id=chat_id, chat_kind="private", bot_username="SlotBot", **kwargs)


def group(chat_id: str = "-500") -> InboundContext:
    return InboundContext(chat_id=chat_id, chat_kind="group", bot_username="SlotBot")


async def _select_slot(dispatcher, context, slot_id=77):
    """Walk a chat up to the confirmation keyboard."""
    await dispatcher.handle(context, ServiceSelected(5))
    await dispatcher.handle(context, DateConfirmed(DAY, 5))
    return await dispatcher.handle(context, SlotSelected(slot_id))


class TestBookingConversation:
    """Test the private chat booking path."""

    @pytest.mark.asyncio
    async def test_book_lists_services(self, dispatcher):
        result = await dispatcher.handle(private(), BookRequested())

        callbacks = [row[0].callback_data for row in result.messages[0].inline_buttons]
        assert callbacks == ["service_5", "service_6"]
        assert result.state == BookingState.IDLE

    @pytest.mark.asyncio
    async def test_service_opens_calendar(self, dispatcher):
        """Test the calendar button carries the service and locale."""
        result = await dispatcher.handle(private(language_hint="ru"), ServiceSelected(5))

        button = result.messages[0].reply_buttons[0][0]
        assert "serviceId=5" in button.web_app_url
        assert "lang=ru" in button.web_app_url
        assert result.messages[0].text.startswith("Стрижка")
        assert result.state == BookingState.AWAITING_DATE

    @pytest.mark.asyncio
    async def test_unknown_service(self, dispatcher):
        result = await dispatcher.handle(private(), ServiceSelected(999))

        assert result.messages[0].text == translate("en", "errors.serviceNotFound")
        assert result.state == BookingState.IDLE

    @pytest.mark.asyncio
    async def test_date_shows_slots(self, dispatcher):
        """Test the picked date yields the slot keyboard."""
        await dispatcher.handle(private(), ServiceSelected(5))

        result = await dispatcher.handle(private(), DateConfirmed(DAY, 5))

        assert result.messages[0].remove_reply_keyboard is True
        buttons = [b for row in result.messages[1].inline_buttons for b in row]
        assert [b.callback_data for b in buttons] == ["slot_10", "slot_11", "slot_12", "slot_77"]
        assert result.state == BookingState.SLOT_LIST_DISPLAYED

    @pytest.mark.asyncio
    async def test_empty_day_offers_calendar_again(self, dispatcher):
        """Test a day without slots goes back to the calendar."""
        await dispatcher.handle(private(), ServiceSelected(5))

        result = await dispatcher.handle(private(), DateConfirmed(date(2030, 5, 2), 5))

        assert result.messages[-1].reply_buttons[0][0].web_app_url is not None
        assert "2030-05-02" in result.messages[-1].text
        assert result.state == BookingState.AWAITING_DATE

    @pytest.mark.asyncio
    async def test_confirm(self, dispatcher, seeded):
        """Test the full path ends in a confirmed appointment."""
        context = private(user_display="@alice", progress=AsyncMock())
        pending = await _select_slot(dispatcher, context)

        assert pending.state == BookingState.PENDING_CONFIRMATION
        assert [b.callback_data for b in pending.messages[0].inline_buttons[0]] == [
            "confirm_77", "cancel_77",
        ]

        result = await dispatcher.handle(context, ConfirmRequested(77))

        context.progress.assert_awaited_once()
        assert context.progress.call_args[0][0].text == translate("en", "progress.confirming")
        assert result.messages[0].text.startswith(translate("en", "confirm.ok"))
        assert result.messages[0].edit is True
        assert result.state == BookingState.CONFIRMED

        async with seeded() as db:
            appointment = (await db.get(Appointment, 1))
            assert appointment.slot_id == 77
            assert appointment.chat_id == "1001"

    @pytest.mark.asyncio
    async def test_confirm_twice(self, dispatcher):
        """Test a repeated confirm reports the slot as taken."""
        context = private()
        await _select_slot(dispatcher, context)
        await dispatcher.handle(context, ConfirmRequested(77))

        result = await dispatcher.handle(context, ConfirmRequested(77))

        assert isinstance(result.error, SlotTakenError)
        assert result.messages[0].text == translate("en", "errors.slotTaken")

    @pytest.mark.asyncio
    async def test_race_between_chats(self, dispatcher, seeded):
        """Test two chats confirming one slot: one booking, one rejection."""
        first, second = private("1001"), private("2002")
        await _select_slot(dispatcher, first)
        await _select_slot(dispatcher, second)

        results = await asyncio.gather(
            dispatcher.handle(first, ConfirmRequested(77)),
            dispatcher.handle(second, ConfirmRequested(77)),
        )

        errors = [r.error for r in results]
        assert sum(e is None for e in errors) == 1
        assert sum(isinstance(e, SlotTakenError) for e in errors) == 1

        loser = next(r for r in results if r.error is not None)
        assert loser.state == BookingState.SLOT_LIST_DISPLAYED

    @pytest.mark.asyncio
    async def test_abort_pending(self, dispatcher):
        """Test cancel under the confirmation keyboard aborts."""
        context = private()
        await _select_slot(dispatcher, context)

        result = await dispatcher.handle(context, CancelRequested(77))

        assert result.messages[0].text == translate("en", "book.aborted")
        assert result.state == BookingState.IDLE

    @pytest.mark.asyncio
    async def test_abort_slot_picked_after_booking(self, dispatcher, seeded):
        """Test cancelling a second pick leaves every appointment untouched."""
        async with seeded() as db:
            db.add(Appointment(id=11, slot_id=12, service_id=5, chat_id="1001"))
            await db.commit()

        context = private()
        await _select_slot(dispatcher, context, slot_id=10)
        confirmed = await dispatcher.handle(context, ConfirmRequested(10))
        pending = await dispatcher.handle(context, SlotSelected(11))

        result = await dispatcher.handle(context, CancelRequested(11))

        assert confirmed.state == BookingState.CONFIRMED
        assert pending.state == BookingState.PENDING_CONFIRMATION
        assert result.action_type == "abort"
        assert result.messages[0].text == translate("en", "book.aborted")
        assert result.state == BookingState.IDLE

        async with seeded() as db:
            appointments = (await db.execute(select(Appointment))).scalars().all()
            assert len(appointments) == 2
            assert all(a.status == AppointmentStatus.CONFIRMED for a in appointments)

    @pytest.mark.asyncio
    async def test_handoff_error_reoffers_calendar(self, dispatcher):
        """Test a missing date brings the calendar back."""
        await dispatcher.handle(private(), ServiceSelected(5))

        result = await dispatcher.handle(private(), HandoffRejected(field="date"))

        assert result.messages[0].text == translate("en", "errors.webappDate")
        assert result.messages[1].reply_buttons
        assert result.state == BookingState.AWAITING_DATE

    @pytest.mark.asyncio
    async def test_handoff_bad_service(self, dispatcher):
        await dispatcher.handle(private(), ServiceSelected(5))

        result = await dispatcher.handle(private(), HandoffRejected(field="service_id"))

        assert len(result.messages) == 1
        assert result.messages[0].text == translate("en", "errors.webappService")


class TestGroupChats:
    """Test the redirect from group chats."""

    @pytest.mark.asyncio
    async def test_group_redirects_to_private(self, dispatcher):
        """Test a group service pick yields a deep link instead of the calendar."""
        await dispatcher.handle(group(), BookRequested())

        result = await dispatcher.handle(group(), ServiceSelected(5))

        message = result.messages[0]
        assert message.reply_buttons == []
        assert message.inline_buttons[0][0].url.endswith("/SlotBot?start=book_5")
        assert result.state == BookingState.IDLE

    @pytest.mark.asyncio
    async def test_deep_link_resumes_in_private(self, dispatcher):
        """Test /start book_5 in private opens the calendar for the service."""
        result = await dispatcher.handle(private(), decode_command("/start", ["book_5"]))

        assert "serviceId=5" in result.messages[0].reply_buttons[0][0].web_app_url
        assert result.state == BookingState.AWAITING_DATE


class TestLanguage:
    """Test per-chat locale preference."""

    @pytest.mark.asyncio
    async def test_preference_applies_to_later_messages(self, dispatcher):
        """Test /lang he makes later replies Hebrew regardless of the hint."""
        context = private(language_hint="en")

        changed = await dispatcher.handle(context, decode_command("/lang", ["he"]))
        listed = await dispatcher.handle(context, MyAppointmentsRequested())

        assert changed.language == "he"
        assert listed.language == "he"
        assert listed.messages[0].text == translate("he", "my.noAppointments")

    @pytest.mark.asyncio
    async def test_hebrew_appointment_list(self, dispatcher):
        context = private(language_hint="en")
        await _select_slot(dispatcher, context)
        await dispatcher.handle(context, ConfirmRequested(77))
        await dispatcher.handle(context, LanguageChangeRequested("he"))

        result = await dispatcher.handle(context, MyAppointmentsRequested())

        assert translate("he", "my.time") in result.messages[0].text
        assert result.messages[0].inline_buttons[0][0].text == translate("he", "my.cancel")

    @pytest.mark.asyncio
    async def test_unsupported_language(self, dispatcher):
        """Test an unknown code is reported and the locale kept."""
        context = private(language_hint="ru")

        result = await dispatcher.handle(context, LanguageChangeRequested("fr"))

        assert result.language == "ru"
        assert result.messages[0].text == translate("ru", "lang.unsupported", code="fr")
        assert result.messages[1].inline_buttons


class TestCancellation:
    """Test cancelling through /my."""

    @pytest.mark.asyncio
    async def test_owner_cancels(self, dispatcher):
        context = private()
        await _select_slot(dispatcher, context)
        confirmed = await dispatcher.handle(context, ConfirmRequested(77))
        listed = await dispatcher.handle(context, MyAppointmentsRequested())
        token = listed.messages[0].inline_buttons[0][0].callback_data

        result = await dispatcher.handle(context, CancelRequested(int(token.split("_")[1])))

        assert confirmed.state == BookingState.CONFIRMED
        assert result.messages[0].text.startswith(translate("en", "my.cancelled"))
        assert result.state == BookingState.CANCELLED

    @pytest.mark.asyncio
    async def test_other_chat_cannot_cancel(self, dispatcher, seeded):
        """Test a foreign appointment looks like a missing one."""
        owner = private("1001")
        await _select_slot(dispatcher, owner)
        await dispatcher.handle(owner, ConfirmRequested(77))

        result = await dispatcher.handle(private("2002"), CancelRequested(1))

        assert isinstance(result.error, NotFoundOrNotOwnedError)
        assert result.messages[0].text == translate("en", "my.appointmentNotFound")

        async with seeded() as db:
            appointment = await db.get(Appointment, 1)
            assert appointment.status == AppointmentStatus.CONFIRMED
