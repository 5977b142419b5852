"""
Conversation session data model.

One session per chat. Holds the language preference and the in-progress
booking selection.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from .state import BookingState, can_transition

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass
class ConversationSession:
    """
    Per-chat session stored in Redis.

    The selection fields (service_id, selected_date, slot_id) are transient
    and cleared when a booking attempt ends; language survives.
    """

    chat_id: str

    # Explicit locale preference; None until the user picks one
    language: Optional[str] = None

    # State machine
    state: BookingState = BookingState.IDLE
    previous_state: Optional[BookingState] = None

    # In-progress selection
    service_id: Optional[int] = None
    selected_date: Optional[date] = None
    slot_id: Optional[int] = None

    # Last confirmed appointment
    appointment_id: Optional[int] = None

    # Metadata
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def transition(self, new_state: BookingState) -> bool:
        """
        Move to a new state if the transition table allows it.

        Args:
            new_state: Target state

        Returns:
            True if the state changed, False if the transition was rejected
        """
        if not can_transition(self.state, new_state):
            logger.warning(
                f"Invalid transition for chat {self.chat_id}: "
                f"{self.state.value} -> {new_state.value}"
            )
            return False

        self.previous_state = self.state
        self.state = new_state
        self.updated_at = _utcnow()
        return True

    def clear_selection(self) -> None:
        """Forget the in-progress selection, keeping the language."""
        self.service_id = None
        self.selected_date = None
        self.slot_id = None

    def to_json(self) -> str:
        """Convert to JSON string for Redis storage."""
        data = {
            "chat_id": self.chat_id,
            "language": self.language,
            "state": self.state.value,
            "previous_state": self.previous_state.value if self.previous_state else None,
            "service_id": self.service_id,
            "selected_date": self.selected_date.isoformat() if self.selected_date else None,
            "slot_id": self.slot_id,
            "appointment_id": self.appointment_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        return json.dumps(data)

    @classmethod
    def from_json(cls, json_str: str) -> "ConversationSession":
        """Create from JSON string."""
        data = json.loads(json_str)
        previous = data.get("previous_state")
        selected = data.get("selected_date")
        return cls(
            chat_id=data["chat_id"],
            language=data.get("language"),
            state=BookingState(data.get("state", BookingState.IDLE.value)),
            previous_state=BookingState(previous) if previous else None,
            service_id=data.get("service_id"),
            selected_date=date.fromisoformat(selected) if selected else None,
            slot_id=data.get("slot_id"),
            appointment_id=data.get("appointment_id"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return json.loads(self.to_json())
