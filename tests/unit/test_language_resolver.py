"""Tests for language resolution and translation."""

import pytest

from app.core.errors import UnsupportedLanguageError
from app.core.i18n import LanguageResolver, MESSAGES, detect_locale, translate
from app.core.session import ConversationSession


class TestDetectLocale:
    """Test client hint mapping."""

    def test_prefix_match(self):
        """Test region suffixes are ignored."""
        assert detect_locale("he-IL") == "he"
        assert detect_locale("ru") == "ru"
        assert detect_locale("EN-us") == "en"

    def test_unsupported_falls_back(self):
        """Test unknown hints use the default."""
        assert detect_locale("fr", default="ru") == "ru"
        assert detect_locale(None, default="he") == "he"
        assert detect_locale("", default="en") == "en"


class TestTranslate:
    """Test message lookup."""

    def test_parameters(self):
        assert translate("en", "lang.set", language="Hebrew") == "Language set: Hebrew"

    def test_english_fallback(self):
        """Test unknown locales fall back to English."""
        assert translate("xx", "my.time") == MESSAGES["en"]["my.time"]

    def test_unknown_key(self):
        """Test unknown keys render as the key itself."""
        assert translate("en", "no.such.key") == "no.such.key"

    def test_missing_placeholder(self):
        """Test a missing parameter does not raise."""
        assert translate("en", "lang.set", other="x") == MESSAGES["en"]["lang.set"]

    def test_catalogs_have_same_keys(self):
        """Test every locale translates every message."""
        english = set(MESSAGES["en"])
        for lang in ("ru", "he"):
            assert set(MESSAGES[lang]) == english


class TestLanguageResolver:
    """Test per-conversation locale resolution."""

    @pytest.fixture
    def resolver(self):
        return LanguageResolver(default_locale="en")

    def test_hint_used_without_preference(self, resolver):
        """Test client hint applies until a preference is stored."""
        session = ConversationSession(chat_id="1")

        assert resolver.resolve(session, "ru-RU") == "ru"
        assert resolver.resolve(session, None) == "en"

    def test_preference_beats_hint(self, resolver):
        """Test stored preference wins over the client hint."""
        session = ConversationSession(chat_id="1")

        assert resolver.set_preference(session, "HE") == "he"
        assert session.language == "he"
        assert resolver.resolve(session, "ru") == "he"

    def test_unsupported_preference(self, resolver):
        """Test unsupported codes leave the locale unchanged."""
        session = ConversationSession(chat_id="1", language="ru")

        with pytest.raises(UnsupportedLanguageError) as exc_info:
            resolver.set_preference(session, "fr")

        assert exc_info.value.code == "fr"
        assert session.language == "ru"
        assert resolver.resolve(session, "en") == "ru"

    def test_preference_survives_serialization(self, resolver):
        """Test the choice persists with the session."""
        session = ConversationSession(chat_id="1")
        resolver.set_preference(session, "he")

        restored = ConversationSession.from_json(session.to_json())

        assert resolver.resolve(restored, "en") == "he"
