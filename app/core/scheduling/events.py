"""
Inbound events.

Every command, inline button token and calendar payload is decoded into one
of the event types below before any booking logic runs.

Inline token grammar:
    service_<serviceId>
    slot_<slotId>
    confirm_<slotId>
    cancel_<slotId or appointmentId>
    lang:<code>

Anything else decodes to GenericError.
"""

import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence, Union

from app.core.errors import InvalidPayloadError
from app.core.scheduling.deeplink import parse_start_payload
from app.core.scheduling.handoff import parse_return_payload


@dataclass(frozen=True)
class StartRequested:
    """/start, optionally carrying a deep-linked service."""

    service_id: Optional[int] = None


@dataclass(frozen=True)
class BookRequested:
    """/book."""


@dataclass(frozen=True)
class MyAppointmentsRequested:
    """/my."""


@dataclass(frozen=True)
class HelpRequested:
    """/help."""


@dataclass(frozen=True)
class LanguageMenuRequested:
    """/lang without an argument."""


@dataclass(frozen=True)
class ServiceSelected:
    service_id: int


@dataclass(frozen=True)
class DateConfirmed:
    date: date
    service_id: int


@dataclass(frozen=True)
class SlotSelected:
    slot_id: int


@dataclass(frozen=True)
class ConfirmRequested:
    slot_id: int


@dataclass(frozen=True)
class CancelRequested:
    """Cancel a pending selection (slot ID) or a booked appointment (appointment ID)."""

    target_id: int


@dataclass(frozen=True)
class LanguageChangeRequested:
    code: str


@dataclass(frozen=True)
class HandoffRejected:
    """Calendar payload could not be used.

    field is "date", "service_id" or None (unparseable payload).
    """

    field: Optional[str] = None


@dataclass(frozen=True)
class GenericError:
    """Unrecognized input."""

    raw: str = ""


Event = Union[
    StartRequested,
    BookRequested,
    MyAppointmentsRequested,
    HelpRequested,
    LanguageMenuRequested,
    ServiceSelected,
    DateConfirmed,
    SlotSelected,
    ConfirmRequested,
    CancelRequested,
    LanguageChangeRequested,
    HandoffRejected,
    GenericError,
]


_ACTION_PATTERNS: list[tuple[re.Pattern, Callable[[str], Event]]] = [
    (re.compile(r"service_([0-9]+)"), lambda v: ServiceSelected(int(v))),
    (re.compile(r"slot_([0-9]+)"), lambda v: SlotSelected(int(v))),
    (re.compile(r"confirm_([0-9]+)"), lambda v: ConfirmRequested(int(v))),
    (re.compile(r"cancel_([0-9]+)"), lambda v: CancelRequested(int(v))),
    (re.compile(r"lang:([A-Za-z]+)"), lambda v: LanguageChangeRequested(v.lower())),
]


def decode_action(token: Optional[str]) -> Event:
    """Decode an inline button token.

    Args:
        token: callback_data of the pressed button

    Returns:
        The matching event, or GenericError for unknown tokens
    """
    if not token:
        return GenericError(raw="")
    for pattern, build in _ACTION_PATTERNS:
        match = pattern.fullmatch(token)
        if match:
            return build(match.group(1))
    return GenericError(raw=token)


def decode_command(name: str, args: Sequence[str] = ()) -> Event:
    """Decode a slash command.

    Args:
        name: Command name, with or without the leading "/" and "@bot" suffix
        args: Whitespace-separated command arguments

    Returns:
        The matching event, or GenericError for unknown commands
    """
    command = name.lstrip("/").split("@", 1)[0].lower()
    first = args[0] if args else None

    if command == "start":
        # Malformed payloads are treated as no payload
        return StartRequested(service_id=parse_start_payload(first))
    if command == "book":
        return BookRequested()
    if command == "my":
        return MyAppointmentsRequested()
    if command == "help":
        return HelpRequested()
    if command == "lang":
        if first:
            return LanguageChangeRequested(first.strip().lower())
        return LanguageMenuRequested()

    return GenericError(raw=f"/{command}")


def decode_web_app_data(raw: Union[str, bytes, dict]) -> Event:
    """Decode the calendar picker payload.

    Returns:
        DateConfirmed, or HandoffRejected naming the unusable field
    """
    try:
        selection = parse_return_payload(raw)
    except InvalidPayloadError as e:
        return HandoffRejected(field=e.field)
    return DateConfirmed(date=selection.date, service_id=selection.service_id)
