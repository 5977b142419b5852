"""
Booking Dispatcher - Main Orchestrator.

Takes one decoded event for one chat, runs it through the flow manager,
executes the resulting action against the booking components and returns
the messages to send. Domain errors are rendered here and leave the session
in its recovery state.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from app.config import settings
from app.core.errors import (
    BookingError,
    ServiceNotFoundError,
    SlotNotFoundError,
    UnsupportedLanguageError,
)
from app.core.i18n import LanguageResolver, get_language_resolver
from app.core.scheduling.booking import (
    BookingEngine,
    CancellationHandler,
    get_booking_engine,
    get_cancellation_handler,
)
from app.core.scheduling.catalog import ServiceCatalog, ServiceInfo, get_service_catalog
from app.core.scheduling.deeplink import build_redirect_link
from app.core.scheduling.events import Event
from app.core.scheduling.flow import ConversationFlow, FlowAction, get_conversation_flow
from app.core.scheduling.handoff import CalendarHandoff, get_calendar_handoff
from app.core.scheduling.response import (
    OutboundMessage,
    ResponseGenerator,
    get_response_generator,
)
from app.core.scheduling.slots import SlotQueryEngine, get_slot_query_engine
from app.core.session import (
    BookingState,
    ConversationSession,
    SessionManager,
    get_session_manager,
)

logger = logging.getLogger(__name__)


@dataclass
class InboundContext:
    """Where an event came from."""

    chat_id: str
    chat_kind: str = "private"
    language_hint: Optional[str] = None
    user_display: Optional[str] = None
    bot_username: str = ""
    # Sends an interim message (e.g. "confirming...") before the action finishes
    progress: Optional[Callable[[OutboundMessage], Awaitable[None]]] = None


@dataclass
class DispatchResult:
    """Messages produced for one event."""

    messages: list[OutboundMessage]
    state: BookingState
    language: str
    error: Optional[BookingError] = None
    action_type: Optional[str] = None


class BookingDispatcher:
    """
    Main orchestrator for the booking conversation.

    Coordinates:
    - Session loading and saving
    - Locale resolution
    - Conversation flow
    - Slot queries, booking and cancellation
    - Response rendering
    """

    def __init__(
        self,
        session_manager: Optional[SessionManager] = None,
        language_resolver: Optional[LanguageResolver] = None,
        flow_manager: Optional[ConversationFlow] = None,
        catalog: Optional[ServiceCatalog] = None,
        slot_engine: Optional[SlotQueryEngine] = None,
        handoff: Optional[CalendarHandoff] = None,
        booking_engine: Optional[BookingEngine] = None,
        cancellation_handler: Optional[CancellationHandler] = None,
        response_generator: Optional[ResponseGenerator] = None,
    ):
        """Initialize dispatcher with optional dependencies.

        Any dependency left out is resolved to its singleton on first use.
        """
        self._session_manager = session_manager
        self._language_resolver = language_resolver
        self._flow_manager = flow_manager
        self._catalog = catalog
        self._slot_engine = slot_engine
        self._handoff = handoff
        self._booking_engine = booking_engine
        self._cancellation_handler = cancellation_handler
        self._response_generator = response_generator

    def _get_session_manager(self) -> SessionManager:
        if self._session_manager is None:
            self._session_manager = get_session_manager()
        return self._session_manager

    def _get_language_resolver(self) -> LanguageResolver:
        if self._language_resolver is None:
            self._language_resolver = get_language_resolver()
        return self._language_resolver

    def _get_flow_manager(self) -> ConversationFlow:
        if self._flow_manager is None:
            self._flow_manager = get_conversation_flow()
        return self._flow_manager

    def _get_catalog(self) -> ServiceCatalog:
        if self._catalog is None:
            self._catalog = get_service_catalog()
        return self._catalog

    def _get_slot_engine(self) -> SlotQueryEngine:
        if self._slot_engine is None:
            self._slot_engine = get_slot_query_engine()
        return self._slot_engine

    def _get_handoff(self) -> CalendarHandoff:
        if self._handoff is None:
            self._handoff = get_calendar_handoff()
        return self._handoff

    def _get_booking_engine(self) -> BookingEngine:
        if self._booking_engine is None:
            self._booking_engine = get_booking_engine()
        return self._booking_engine

    def _get_cancellation_handler(self) -> CancellationHandler:
        if self._cancellation_handler is None:
            self._cancellation_handler = get_cancellation_handler()
        return self._cancellation_handler

    def _get_response_generator(self) -> ResponseGenerator:
        if self._response_generator is None:
            self._response_generator = get_response_generator()
        return self._response_generator

    async def handle(self, context: InboundContext, event: Event) -> DispatchResult:
        """Process one inbound event.

        Args:
            context: Chat the event came from
            event: Decoded event

        Returns:
            DispatchResult with the messages to deliver, in order
        """
        sessions = self._get_session_manager()
        responses = self._get_response_generator()

        session = await sessions.get_or_create(context.chat_id)
        lang = self._get_language_resolver().resolve(session, context.language_hint)
        action = self._get_flow_manager().process(session, event, context.chat_kind)

        logger.debug(
            f"Chat {context.chat_id}: {type(event).__name__} -> {action.action_type} "
            f"({session.state.value} -> {action.next_state.value})"
        )

        error: Optional[BookingError] = None
        try:
            messages, lang = await self._execute(context, session, action, lang)
            self._apply_state(session, action.next_state)
        except BookingError as e:
            error = e
            logger.info(f"Chat {context.chat_id}: {action.action_type} failed: {e}")
            messages = [
                responses.error(lang, e.message_key, edit=action.action_type == "confirm")
            ]
            if action.fallback_state is not None:
                self._apply_state(session, action.fallback_state)

        await sessions.save(session)

        return DispatchResult(
            messages=messages,
            state=session.state,
            language=lang,
            error=error,
            action_type=action.action_type,
        )

    def _apply_state(self, session: ConversationSession, state: BookingState) -> None:
        """Move the session to a state; rejected transitions keep the current one."""
        if state != session.state:
            session.transition(state)

    async def _execute(
        self,
        context: InboundContext,
        session: ConversationSession,
        action: FlowAction,
        lang: str,
    ) -> tuple[list[OutboundMessage], str]:
        """Run an action.

        Returns:
            Messages to send and the locale they were rendered in

        Raises:
            BookingError: Recoverable failure, rendered by the caller
        """
        responses = self._get_response_generator()
        kind = action.action_type

        if kind == "welcome":
            session.clear_selection()
            services = await self._get_catalog().list_services()
            return [responses.welcome(lang, services)], lang

        if kind == "help":
            return [responses.help(lang)], lang

        if kind == "list_services":
            session.clear_selection()
            services = await self._get_catalog().list_services()
            return [responses.service_menu(lang, services)], lang

        if kind == "prompt_date":
            service = await self._require_service(action.service_id)
            session.clear_selection()
            session.service_id = service.id
            url = self._get_handoff().build_url(service.id, lang)
            return [responses.calendar_prompt(lang, service, url)], lang

        if kind == "redirect":
            service = await self._require_service(action.service_id)
            link = build_redirect_link(context.bot_username, service.id)
            return [responses.redirect(lang, link)], lang

        if kind == "show_slots":
            return await self._show_slots(session, action, lang), lang

        if kind == "show_slot":
            slot = await self._get_slot_engine().get_slot(action.slot_id)
            if slot is None:
                raise SlotNotFoundError(action.slot_id)
            session.slot_id = slot.id
            session.service_id = slot.service_id
            return [responses.slot_details(lang, slot)], lang

        if kind == "confirm":
            if context.progress is not None:
                await context.progress(responses.confirming(lang))
            booking = await self._get_booking_engine().confirm(
                action.slot_id,
                context.chat_id,
                requester=context.user_display,
            )
            session.appointment_id = booking.appointment_id
            session.clear_selection()
            return [responses.confirmed(lang, booking)], lang

        if kind == "abort":
            session.clear_selection()
            return [responses.aborted(lang)], lang

        if kind == "cancel":
            booking = await self._get_cancellation_handler().cancel(
                action.appointment_id, context.chat_id
            )
            return [responses.cancelled(lang, booking)], lang

        if kind == "list_appointments":
            bookings = await self._get_cancellation_handler().list_confirmed(context.chat_id)
            if not bookings:
                return [responses.no_appointments(lang)], lang
            return [responses.appointment(lang, b) for b in bookings], lang

        if kind == "language_menu":
            return [responses.language_menu(lang)], lang

        if kind == "set_language":
            try:
                lang = self._get_language_resolver().set_preference(
                    session, action.language_code
                )
            except UnsupportedLanguageError as e:
                # Reported, not fatal: keep the current locale
                return [
                    responses.error(lang, e.message_key, code=e.code),
                    responses.language_menu(lang),
                ], lang
            return [responses.language_set(lang)], lang

        if kind == "handoff_error":
            messages = [responses.error(lang, action.message_key)]
            if action.service_id is not None and action.message_key != "errors.webappService":
                service = await self._get_catalog().get_service(action.service_id)
                if service is not None:
                    url = self._get_handoff().build_url(service.id, lang)
                    messages.append(responses.calendar_prompt(lang, service, url))
            return messages, lang

        return [responses.error(lang, action.message_key or "errors.generic")], lang

    async def _show_slots(
        self,
        session: ConversationSession,
        action: FlowAction,
        lang: str,
    ) -> list[OutboundMessage]:
        """Slots for the date returned by the calendar picker."""
        responses = self._get_response_generator()
        service = await self._require_service(action.service_id)

        session.service_id = service.id
        session.selected_date = action.selected_date
        session.slot_id = None

        slots = list(await self._get_slot_engine().list_bookable(
            service.id,
            action.selected_date,
            settings.booking_cutoff_min,
        ))

        messages = [responses.date_received(lang)]
        day = action.selected_date.isoformat()
        if not slots:
            # Nothing that day: offer the calendar again
            action.next_state = BookingState.AWAITING_DATE
            url = self._get_handoff().build_url(service.id, lang)
            messages.append(
                responses.calendar_prompt(lang, service, url, "book.noSlotsDay", date=day)
            )
            return messages

        messages.append(responses.slot_list(lang, action.selected_date, slots))
        return messages

    async def _require_service(self, service_id: Optional[int]) -> ServiceInfo:
        service = None
        if service_id is not None:
            service = await self._get_catalog().get_service(service_id)
        if service is None:
            raise ServiceNotFoundError(service_id or 0)
        return service


# Singleton
_dispatcher: Optional[BookingDispatcher] = None


def get_booking_dispatcher() -> BookingDispatcher:
    """Get singleton BookingDispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = BookingDispatcher()
    return _dispatcher
