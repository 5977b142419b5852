"""Language resolution and message translation."""

import logging
from typing import Any, Optional

from app.config import settings
from app.core.errors import UnsupportedLanguageError
from app.core.i18n.messages import MESSAGES
from app.core.session.models import ConversationSession

logger = logging.getLogger(__name__)

SUPPORTED_LOCALES: tuple[str, ...] = ("ru", "en", "he")


def is_supported(code: Optional[str]) -> bool:
    """Check if a code names a supported locale exactly."""
    return code in SUPPORTED_LOCALES


def detect_locale(hint: Optional[str], default: Optional[str] = None) -> str:
    """Map a client-reported language code onto the supported set.

    Matching is by prefix, so "he-IL" resolves to "he".

    Args:
        hint: Language code reported by the client (may be None)
        default: Locale for missing or unsupported hints

    Returns:
        A supported locale code
    """
    fallback = default or settings.default_locale
    if not hint:
        return fallback
    code = hint.strip().lower()
    for locale in SUPPORTED_LOCALES:
        if code.startswith(locale):
            return locale
    return fallback


def translate(lang: str, key: str, **params: Any) -> str:
    """Look up a message, falling back to English and then the key."""
    text = MESSAGES.get(lang, {}).get(key) or MESSAGES["en"].get(key, key)
    if params:
        try:
            return text.format(**params)
        except (KeyError, IndexError):
            logger.warning(f"Missing placeholder for message {key!r} in {lang!r}")
    return text


class LanguageResolver:
    """
    Resolves the locale of a conversation.

    Order: explicit preference stored on the session, then the client hint
    mapped onto the supported set, then the configured default.
    """

    def __init__(self, default_locale: Optional[str] = None):
        self._default = default_locale or settings.default_locale

    def resolve(self, session: ConversationSession, hint: Optional[str] = None) -> str:
        """Return the locale to render this conversation in.

        Args:
            session: Conversation session holding any stored preference
            hint: Client-reported language code

        Returns:
            Supported locale code
        """
        if is_supported(session.language):
            return session.language  # type: ignore[return-value]
        return detect_locale(hint, self._default)

    def set_preference(self, session: ConversationSession, code: str) -> str:
        """Store an explicit locale choice on the session.

        The caller persists the session; the choice applies to every
        later render in the same conversation.

        Raises:
            UnsupportedLanguageError: If the code is not supported. The
                session keeps its current locale.
        """
        normalized = (code or "").strip().lower()
        if not is_supported(normalized):
            raise UnsupportedLanguageError(code)
        session.language = normalized
        logger.debug(f"Chat {session.chat_id} language set to {normalized}")
        return normalized


# Singleton
_resolver: Optional[LanguageResolver] = None


def get_language_resolver() -> LanguageResolver:
    """Get singleton LanguageResolver."""
    global _resolver
    if _resolver is None:
        _resolver = LanguageResolver()
    return _resolver
