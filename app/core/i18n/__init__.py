"""
Localization module.

Supported locales are ru, en and he. Usage:

    from app.core.i18n import get_language_resolver, translate

    lang = get_language_resolver().resolve(session, hint="he-IL")
    text = translate(lang, "book.chooseService")
"""

from app.core.i18n.messages import LANGUAGE_NAMES, MESSAGES
from app.core.i18n.resolver import (
    SUPPORTED_LOCALES,
    LanguageResolver,
    detect_locale,
    get_language_resolver,
    is_supported,
    translate,
)

__all__ = [
    "LANGUAGE_NAMES",
    "MESSAGES",
    "SUPPORTED_LOCALES",
    "LanguageResolver",
    "detect_locale",
    "get_language_resolver",
    "is_supported",
    "translate",
]
