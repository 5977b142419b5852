"""Booking conversation state machine."""

from enum import Enum
from typing import Set


class BookingState(str, Enum):
    """States in the appointment booking flow."""

    # Initial
    IDLE = "idle"

    # Selection
    AWAITING_DATE = "awaiting_date"
    SLOT_LIST_DISPLAYED = "slot_list_displayed"

    # Confirmation
    PENDING_CONFIRMATION = "pending_confirmation"

    # Terminal states
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


# Valid state transitions
VALID_TRANSITIONS: dict[BookingState, Set[BookingState]] = {
    BookingState.IDLE: {
        BookingState.IDLE,
        BookingState.AWAITING_DATE,
        BookingState.SLOT_LIST_DISPLAYED,  # Confirm failed
        BookingState.PENDING_CONFIRMATION,  # Slot picked from an earlier list
    },
    BookingState.AWAITING_DATE: {
        BookingState.AWAITING_DATE,  # Another service picked
        BookingState.SLOT_LIST_DISPLAYED,
        BookingState.PENDING_CONFIRMATION,
        BookingState.IDLE,
    },
    BookingState.SLOT_LIST_DISPLAYED: {
        BookingState.SLOT_LIST_DISPLAYED,  # Another date picked
        BookingState.PENDING_CONFIRMATION,
        BookingState.AWAITING_DATE,
        BookingState.IDLE,
    },
    BookingState.PENDING_CONFIRMATION: {
        BookingState.PENDING_CONFIRMATION,  # Another slot picked
        BookingState.CONFIRMED,
        BookingState.SLOT_LIST_DISPLAYED,  # Slot taken or gone
        BookingState.AWAITING_DATE,
        BookingState.IDLE,  # Pre-confirmation cancel
    },
    BookingState.CONFIRMED: {
        BookingState.CANCELLED,
        BookingState.AWAITING_DATE,  # Book another
        BookingState.SLOT_LIST_DISPLAYED,
        BookingState.PENDING_CONFIRMATION,
        BookingState.IDLE,
    },
    BookingState.CANCELLED: {
        BookingState.AWAITING_DATE,
        BookingState.SLOT_LIST_DISPLAYED,
        BookingState.PENDING_CONFIRMATION,
        BookingState.IDLE,
    },
}


def can_transition(from_state: BookingState, to_state: BookingState) -> bool:
    """Check if a state transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, set())


def get_valid_transitions(state: BookingState) -> Set[BookingState]:
    """Get all valid transitions from a state."""
    return VALID_TRANSITIONS.get(state, set())


def is_terminal_state(state: BookingState) -> bool:
    """Check if state ends a booking attempt."""
    return state in {
        BookingState.CONFIRMED,
        BookingState.CANCELLED,
    }
