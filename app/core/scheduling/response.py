"""
Response Generator.

Renders localized, transport-neutral outbound messages. The Telegram layer
turns them into API calls.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional

from app.core.i18n import LANGUAGE_NAMES, SUPPORTED_LOCALES, translate
from app.core.scheduling.booking import BookingConfirmation
from app.core.scheduling.catalog import ServiceInfo
from app.core.scheduling.slots import SlotView

logger = logging.getLogger(__name__)

CALENDAR_BUTTON = "📆"
SLOT_FREE_MARK = "✅"
SLOT_TAKEN_MARK = "❌"
SLOTS_PER_ROW = 3


@dataclass
class Button:
    """
    A button attached to a message.

    Exactly one of callback_data, url or web_app_url is set.
    """

    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None
    web_app_url: Optional[str] = None


@dataclass
class OutboundMessage:
    """A message to deliver to the current chat."""

    text: str
    # Buttons under the message
    inline_buttons: list[list[Button]] = field(default_factory=list)
    # Buttons replacing the user's keyboard (used for the calendar web app)
    reply_buttons: list[list[Button]] = field(default_factory=list)
    # Replace the message the user interacted with instead of sending a new one
    edit: bool = False
    remove_reply_keyboard: bool = False


class ResponseGenerator:
    """Template-based message builder."""

    # Welcome / help

    def welcome(self, lang: str, services: list[ServiceInfo]) -> OutboundMessage:
        return OutboundMessage(
            text=translate(lang, "start.welcome"),
            inline_buttons=self._service_rows(lang, services),
        )

    def help(self, lang: str) -> OutboundMessage:
        return OutboundMessage(text=translate(lang, "help.text"))

    def service_menu(self, lang: str, services: list[ServiceInfo]) -> OutboundMessage:
        """Service keyboard, or a notice when the catalog is empty."""
        if not services:
            return OutboundMessage(text=translate(lang, "book.noServices"))
        return OutboundMessage(
            text=translate(lang, "book.chooseService"),
            inline_buttons=self._service_rows(lang, services),
        )

    # Date selection

    def calendar_prompt(
        self,
        lang: str,
        service: ServiceInfo,
        calendar_url: str,
        text_key: str = "book.openCalendar",
        **params,
    ) -> OutboundMessage:
        """Ask the user to open the calendar picker for a service."""
        text = f"{service.localized_name(lang)}\n{translate(lang, text_key, **params)}"
        return OutboundMessage(
            text=text,
            reply_buttons=[[Button(text=CALENDAR_BUTTON, web_app_url=calendar_url)]],
        )

    def redirect(self, lang: str, link: str) -> OutboundMessage:
        """Point a group user to the private chat."""
        return OutboundMessage(
            text=translate(lang, "group.openPm"),
            inline_buttons=[[Button(text=translate(lang, "group.openButton"), url=link)]],
        )

    def date_received(self, lang: str) -> OutboundMessage:
        return OutboundMessage(
            text=translate(lang, "progress.dateReceived"),
            remove_reply_keyboard=True,
        )

    # Slots

    def slot_list(self, lang: str, day: date, slots: Iterable[SlotView]) -> OutboundMessage:
        """Slot keyboard for one day. Taken slots stay visible, marked."""
        buttons = []
        for slot in slots:
            mark = SLOT_FREE_MARK if slot.is_available else SLOT_TAKEN_MARK
            buttons.append(Button(
                text=f"{mark} {slot.local_start.strftime('%H:%M')}",
                callback_data=f"slot_{slot.id}",
            ))

        rows = [buttons[i:i + SLOTS_PER_ROW] for i in range(0, len(buttons), SLOTS_PER_ROW)]
        return OutboundMessage(
            text=translate(lang, "book.chooseTime", date=day.isoformat()),
            inline_buttons=rows,
        )

    def slot_details(self, lang: str, slot: SlotView) -> OutboundMessage:
        """Pending confirmation: service, time and confirm / cancel buttons."""
        service_name = slot.service.localized_name(lang) if slot.service else ""
        when = slot.local_start.strftime("%Y-%m-%d %H:%M")
        return OutboundMessage(
            text=f"{service_name}\n{when}",
            inline_buttons=[[
                Button(text=SLOT_FREE_MARK, callback_data=f"confirm_{slot.id}"),
                Button(text=SLOT_TAKEN_MARK, callback_data=f"cancel_{slot.id}"),
            ]],
        )

    # Booking

    def confirming(self, lang: str) -> OutboundMessage:
        return OutboundMessage(text=translate(lang, "progress.confirming"), edit=True)

    def confirmed(self, lang: str, booking: BookingConfirmation) -> OutboundMessage:
        details = translate(
            lang,
            "confirm.details",
            service=booking.service.localized_name(lang),
            when=booking.when,
        )
        return OutboundMessage(text=f"{translate(lang, 'confirm.ok')}\n{details}", edit=True)

    def aborted(self, lang: str) -> OutboundMessage:
        return OutboundMessage(text=translate(lang, "book.aborted"), edit=True)

    # Appointments

    def appointment(self, lang: str, booking: BookingConfirmation) -> OutboundMessage:
        """One entry of /my with its cancel button."""
        return OutboundMessage(
            text=(
                f"{booking.service.localized_name(lang)}\n"
                f"{translate(lang, 'my.time')}: {booking.when}"
            ),
            inline_buttons=[[
                Button(
                    text=translate(lang, "my.cancel"),
                    callback_data=f"cancel_{booking.appointment_id}",
                )
            ]],
        )

    def no_appointments(self, lang: str) -> OutboundMessage:
        return OutboundMessage(text=translate(lang, "my.noAppointments"))

    def cancelled(self, lang: str, booking: BookingConfirmation) -> OutboundMessage:
        return OutboundMessage(
            text=(
                f"{translate(lang, 'my.cancelled')}\n"
                f"{booking.service.localized_name(lang)}\n{booking.when}"
            ),
            edit=True,
        )

    # Language

    def language_menu(self, lang: str) -> OutboundMessage:
        return OutboundMessage(
            text=translate(lang, "lang.choose"),
            inline_buttons=[[
                Button(text=LANGUAGE_NAMES[code], callback_data=f"lang:{code}")
                for code in SUPPORTED_LOCALES
            ]],
        )

    def language_set(self, lang: str) -> OutboundMessage:
        return OutboundMessage(
            text=translate(lang, "lang.set", language=LANGUAGE_NAMES.get(lang, lang)),
        )

    # Errors

    def error(self, lang: str, key: str = "errors.generic", edit: bool = False, **params) -> OutboundMessage:
        """Localized error message."""
        return OutboundMessage(text=translate(lang, key, **params), edit=edit)

    def _service_rows(self, lang: str, services: list[ServiceInfo]) -> list[list[Button]]:
        return [
            [Button(text=s.localized_name(lang), callback_data=f"service_{s.id}")]
            for s in services
        ]


# Singleton
_generator: Optional[ResponseGenerator] = None


def get_response_generator() -> ResponseGenerator:
    """Get singleton ResponseGenerator."""
    global _generator
    if _generator is None:
        _generator = ResponseGenerator()
    return _generator
