"""
Scheduling Module

Provides the booking conversation: event decoding, the flow state machine,
slot queries, the calendar handoff, deep links, booking and cancellation,
and response rendering.

Usage:
    from app.core.scheduling import (
        InboundContext,
        decode_action,
        get_booking_dispatcher,
    )

    result = await get_booking_dispatcher().handle(
        InboundContext(chat_id="42", chat_kind="private", language_hint="he"),
        decode_action("confirm_77"),
    )
    for message in result.messages:
        print(message.text)
"""

# Service lookup
from app.core.scheduling.catalog import (
    ServiceCatalog,
    ServiceInfo,
    get_service_catalog,
)

# Slot Query Engine
from app.core.scheduling.slots import (
    SlotQueryEngine,
    SlotView,
    get_slot_query_engine,
)

# Calendar Handoff
from app.core.scheduling.handoff import (
    CalendarHandoff,
    CalendarSelection,
    get_calendar_handoff,
    parse_return_payload,
)

# Deep links
from app.core.scheduling.deeplink import (
    build_redirect_link,
    parse_start_payload,
    should_redirect,
)

# Events
from app.core.scheduling.events import (
    Event,
    decode_action,
    decode_command,
    decode_web_app_data,
)

# Booking and cancellation
from app.core.scheduling.booking import (
    BookingConfirmation,
    BookingEngine,
    CancellationHandler,
    get_booking_engine,
    get_cancellation_handler,
)

# Response Generator
from app.core.scheduling.response import (
    Button,
    OutboundMessage,
    ResponseGenerator,
    get_response_generator,
)

# Conversation Flow
from app.core.scheduling.flow import (
    ConversationFlow,
    FlowAction,
    get_conversation_flow,
)

# Dispatcher (main orchestrator)
from app.core.scheduling.dispatch import (
    BookingDispatcher,
    DispatchResult,
    InboundContext,
    get_booking_dispatcher,
)

__all__ = [
    # Service lookup
    "ServiceCatalog",
    "ServiceInfo",
    "get_service_catalog",
    # Slot Query Engine
    "SlotQueryEngine",
    "SlotView",
    "get_slot_query_engine",
    # Calendar Handoff
    "CalendarHandoff",
    "CalendarSelection",
    "get_calendar_handoff",
    "parse_return_payload",
    # Deep links
    "build_redirect_link",
    "parse_start_payload",
    "should_redirect",
    # Events
    "Event",
    "decode_action",
    "decode_command",
    "decode_web_app_data",
    # Booking and cancellation
    "BookingConfirmation",
    "BookingEngine",
    "CancellationHandler",
    "get_booking_engine",
    "get_cancellation_handler",
    # Response Generator
    "Button",
    "OutboundMessage",
    "ResponseGenerator",
    "get_response_generator",
    # Conversation Flow
    "ConversationFlow",
    "FlowAction",
    "get_conversation_flow",
    # Dispatcher
    "BookingDispatcher",
    "DispatchResult",
    "InboundContext",
    "get_booking_dispatcher",
]
