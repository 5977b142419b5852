"""
Conversation Flow Manager.

Maps (session state, event, chat kind) to the next action. Pure decision
logic: no I/O, no storage. The dispatcher executes the action and applies
the resulting state.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.core.errors import InvalidPayloadError
from app.core.scheduling.deeplink import should_redirect
from app.core.scheduling.events import (
    BookRequested,
    CancelRequested,
    ConfirmRequested,
    DateConfirmed,
    Event,
    GenericError,
    HandoffRejected,
    HelpRequested,
    LanguageChangeRequested,
    LanguageMenuRequested,
    MyAppointmentsRequested,
    ServiceSelected,
    SlotSelected,
    StartRequested,
)
from app.core.session.models import ConversationSession
from app.core.session.state import BookingState

logger = logging.getLogger(__name__)


@dataclass
class FlowAction:
    """Action determined by flow manager."""

    next_state: BookingState
    # welcome, help, list_services, prompt_date, redirect, show_slots,
    # show_slot, confirm, abort, cancel, list_appointments, language_menu,
    # set_language, handoff_error, error
    action_type: str
    # State applied when the action fails with a recoverable error
    fallback_state: Optional[BookingState] = None
    service_id: Optional[int] = None
    slot_id: Optional[int] = None
    appointment_id: Optional[int] = None
    selected_date: Optional[date] = None
    language_code: Optional[str] = None
    message_key: Optional[str] = None


class ConversationFlow:
    """
    State machine manager for booking conversations.

    States: idle -> awaiting_date -> slot_list_displayed ->
    pending_confirmation -> confirmed -> cancelled. Commands that do not
    touch the booking (help, language, /my) keep the current state.
    """

    def process(
        self,
        session: ConversationSession,
        event: Event,
        chat_kind: str,
    ) -> FlowAction:
        """Determine the action for an inbound event.

        Args:
            session: Current conversation session
            event: Decoded inbound event
            chat_kind: Telegram chat type ("private", "group", ...)

        Returns:
            FlowAction with next state and action
        """
        current = session.state

        if isinstance(event, StartRequested):
            if event.service_id is not None:
                return self._select_service(event.service_id, chat_kind)
            return FlowAction(next_state=BookingState.IDLE, action_type="welcome")

        if isinstance(event, BookRequested):
            return FlowAction(next_state=BookingState.IDLE, action_type="list_services")

        if isinstance(event, ServiceSelected):
            return self._select_service(event.service_id, chat_kind)

        if isinstance(event, DateConfirmed):
            return FlowAction(
                next_state=BookingState.SLOT_LIST_DISPLAYED,
                action_type="show_slots",
                fallback_state=BookingState.AWAITING_DATE,
                service_id=event.service_id,
                selected_date=event.date,
            )

        if isinstance(event, HandoffRejected):
            return FlowAction(
                next_state=current,
                action_type="handoff_error",
                message_key=InvalidPayloadError(event.field).message_key,
                service_id=session.service_id,
            )

        if isinstance(event, SlotSelected):
            return FlowAction(
                next_state=BookingState.PENDING_CONFIRMATION,
                action_type="show_slot",
                fallback_state=current,
                slot_id=event.slot_id,
            )

        if isinstance(event, ConfirmRequested):
            return FlowAction(
                next_state=BookingState.CONFIRMED,
                action_type="confirm",
                fallback_state=BookingState.SLOT_LIST_DISPLAYED,
                slot_id=event.slot_id,
            )

        if isinstance(event, CancelRequested):
            return self._handle_cancel(session, event.target_id)

        if isinstance(event, MyAppointmentsRequested):
            return FlowAction(next_state=current, action_type="list_appointments")

        if isinstance(event, LanguageMenuRequested):
            return FlowAction(next_state=current, action_type="language_menu")

        if isinstance(event, LanguageChangeRequested):
            return FlowAction(
                next_state=current,
                action_type="set_language",
                language_code=event.code,
            )

        if isinstance(event, HelpRequested):
            return FlowAction(next_state=current, action_type="help")

        if isinstance(event, GenericError):
            logger.debug(f"Unrecognized input from chat {session.chat_id}: {event.raw!r}")

        return FlowAction(
            next_state=current,
            action_type="error",
            message_key="errors.generic",
        )

    def _select_service(self, service_id: int, chat_kind: str) -> FlowAction:
        """Service chosen: open the calendar, or redirect out of a group."""
        if should_redirect(chat_kind):
            # The calendar needs a private chat; the group session stays idle
            return FlowAction(
                next_state=BookingState.IDLE,
                action_type="redirect",
                service_id=service_id,
            )
        return FlowAction(
            next_state=BookingState.AWAITING_DATE,
            action_type="prompt_date",
            fallback_state=BookingState.IDLE,
            service_id=service_id,
        )

    def _handle_cancel(self, session: ConversationSession, target_id: int) -> FlowAction:
        """Tell a pre-confirmation cancel from an appointment cancellation.

        cancel_<id> under the confirmation keyboard carries the slot ID;
        everywhere else it carries an appointment ID. The selected slot is
        set only while that keyboard is the latest one shown.
        """
        if session.slot_id is not None and session.slot_id == target_id:
            return FlowAction(
                next_state=BookingState.IDLE,
                action_type="abort",
                slot_id=target_id,
            )

        # Only the appointment just confirmed moves the booking flow
        next_state = session.state
        if (
            session.state == BookingState.CONFIRMED
            and session.appointment_id == target_id
        ):
            next_state = BookingState.CANCELLED

        return FlowAction(
            next_state=next_state,
            action_type="cancel",
            fallback_state=session.state,
            appointment_id=target_id,
        )


# Singleton
_flow: Optional[ConversationFlow] = None


def get_conversation_flow() -> ConversationFlow:
    """Get singleton ConversationFlow."""
    global _flow
    if _flow is None:
        _flow = ConversationFlow()
    return _flow
