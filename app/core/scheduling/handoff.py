"""
Calendar Handoff.

The date-picking step runs in an embedded web page (the Telegram web app
under /webapp/calendar). This module builds the page URL and parses the
payload the page sends back.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Union
from urllib.parse import urlencode

from app.config import settings
from app.core.errors import InvalidPayloadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarSelection:
    """Date and service chosen in the calendar picker."""

    date: date
    service_id: int


def _parse_date(value: Any) -> date:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayloadError("date", "Calendar payload has no date")
    try:
        # The picker sends YYYY-MM-DD; tolerate a trailing time part
        return date.fromisoformat(value.strip()[:10])
    except ValueError as e:
        raise InvalidPayloadError("date", f"Invalid calendar date: {value!r}") from e


def _parse_service_id(value: Any) -> int:
    if isinstance(value, bool) or value is None:
        raise InvalidPayloadError("service_id", "Calendar payload has no service id")
    if isinstance(value, int):
        service_id = value
    elif isinstance(value, str) and value.strip().isdigit():
        service_id = int(value.strip())
    else:
        raise InvalidPayloadError("service_id", f"Invalid service id: {value!r}")
    if service_id <= 0:
        raise InvalidPayloadError("service_id", f"Invalid service id: {value!r}")
    return service_id


def parse_return_payload(raw: Union[str, bytes, dict]) -> CalendarSelection:
    """Parse the payload returned by the calendar picker.

    Args:
        raw: JSON text (or an already decoded dict) of the form
            {"date": "YYYY-MM-DD", "serviceId": 5}

    Returns:
        CalendarSelection

    Raises:
        InvalidPayloadError: field="date" when the date is missing or
            invalid, field="service_id" when the service id is missing or
            not numeric, field=None when the payload is not a JSON object.
    """
    if isinstance(raw, dict):
        data = raw
    else:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise InvalidPayloadError(None, "Calendar payload is not valid JSON") from e

    if not isinstance(data, dict):
        raise InvalidPayloadError(None, "Calendar payload is not an object")

    selected = _parse_date(data.get("date"))
    service_id = _parse_service_id(data.get("serviceId", data.get("service_id")))

    return CalendarSelection(date=selected, service_id=service_id)


class CalendarHandoff:
    """Builds links to the calendar picker page."""

    def __init__(
        self,
        calendar_url: Optional[str] = None,
        cutoff_minutes: Optional[int] = None,
    ):
        """Initialize handoff.

        Args:
            calendar_url: Absolute picker URL (default: derived from public_base_url)
            cutoff_minutes: Lead time passed to the picker (default: booking_cutoff_min)
        """
        self._calendar_url = calendar_url or settings.calendar_url
        self._cutoff_minutes = (
            cutoff_minutes if cutoff_minutes is not None else settings.booking_cutoff_min
        )

    def build_url(self, service_id: int, lang: str) -> str:
        """URL of the picker page for a service, rendered in a locale."""
        query = urlencode({
            "serviceId": service_id,
            "cutoffMin": self._cutoff_minutes,
            "lang": lang,
        })
        return f"{self._calendar_url}?{query}"

    def parse_return_payload(self, raw: Union[str, bytes, dict]) -> CalendarSelection:
        """Parse the picker's return payload. See parse_return_payload()."""
        return parse_return_payload(raw)


# Singleton
_handoff: Optional[CalendarHandoff] = None


def get_calendar_handoff() -> CalendarHandoff:
    """Get singleton CalendarHandoff."""
    global _handoff
    if _handoff is None:
        _handoff = CalendarHandoff()
    return _handoff
