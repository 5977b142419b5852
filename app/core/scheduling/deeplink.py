"""Deep links that move a booking from a group chat into a private chat."""

import re
from typing import Optional

from app.config import settings

PRIVATE_CHAT = "private"

# book_<serviceId>, ASCII digits only
START_PAYLOAD_PATTERN = re.compile(r"book_([0-9]+)")


def should_redirect(chat_kind: Optional[str]) -> bool:
    """Check if the calendar cannot be opened in this kind of chat.

    The picker is only available in private chats; groups, supergroups and
    channels get a deep link instead.
    """
    return chat_kind != PRIVATE_CHAT


def build_redirect_link(
    bot_username: str,
    service_id: int,
    host: Optional[str] = None,
) -> str:
    """Build a link that opens a private chat with the service pre-selected.

    Args:
        bot_username: Bot username, with or without a leading "@"
        service_id: Service to carry into the private chat
        host: Link host (default: telegram_link_host)

    Returns:
        URL of the form <host>/<bot>?start=book_<serviceId>
    """
    host = (host or settings.telegram_link_host).rstrip("/")
    return f"{host}/{bot_username.lstrip('@')}?start=book_{service_id}"


def parse_start_payload(payload: Optional[str]) -> Optional[int]:
    """Extract the service ID from a /start payload.

    Returns None for missing or malformed payloads.
    """
    if not payload:
        return None
    match = START_PAYLOAD_PATTERN.fullmatch(payload.strip())
    if match is None:
        return None
    service_id = int(match.group(1))
    return service_id if service_id > 0 else None
