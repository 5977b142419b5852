"""Domain errors raised by the booking core.

Every error carries the i18n key of the message shown to the user.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for recoverable booking errors."""

    message_key = "errors.generic"


class SlotNotFoundError(BookingError):
    """Referenced slot no longer exists."""

    message_key = "errors.slotNotFound"

    def __init__(self, slot_id: int):
        super().__init__(f"Slot {slot_id} not found")
        self.slot_id = slot_id


class SlotTakenError(BookingError):
    """Slot already has an appointment (storage uniqueness violation)."""

    message_key = "errors.slotTaken"

    def __init__(self, slot_id: int):
        super().__init__(f"Slot {slot_id} is already taken")
        self.slot_id = slot_id


class ServiceNotFoundError(BookingError):
    """Referenced service does not exist."""

    message_key = "errors.serviceNotFound"

    def __init__(self, service_id: int):
        super().__init__(f"Service {service_id} not found")
        self.service_id = service_id


class InvalidPayloadError(BookingError):
    """Calendar picker returned unusable data.

    ``field`` is "date" or "service_id" when a specific field is missing or
    invalid, None when the payload itself could not be parsed.
    """

    def __init__(self, field: Optional[str] = None, detail: str = ""):
        super().__init__(detail or f"Invalid calendar payload ({field or 'malformed'})")
        self.field = field

    @property
    def message_key(self) -> str:  # type: ignore[override]
        if self.field == "date":
            return "errors.webappDate"
        if self.field == "service_id":
            return "errors.webappService"
        return "errors.webappPayload"


class UnsupportedLanguageError(BookingError):
    """Requested locale is outside the supported set."""

    message_key = "lang.unsupported"

    def __init__(self, code: str):
        super().__init__(f"Unsupported language: {code!r}")
        self.code = code


class NotFoundOrNotOwnedError(BookingError):
    """Appointment is absent or belongs to another conversation.

    Both cases raise the same error.
    """

    message_key = "my.appointmentNotFound"

    def __init__(self, appointment_id: int):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id
