"""
Conversation session module.

Per-chat state: language preference, booking state machine and the
in-progress selection, stored in Redis with an in-memory fallback.
"""

from .models import ConversationSession
from .manager import SessionManager, get_session_manager
from .state import BookingState, can_transition

__all__ = [
    # Models
    "ConversationSession",
    # State
    "BookingState",
    "can_transition",
    # Manager
    "SessionManager",
    "get_session_manager",
]
