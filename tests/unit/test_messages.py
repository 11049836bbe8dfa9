"""Unit tests for localized notification copy."""

import pytest

from mono.config import get_settings
from mono.notifications.messages import FALLBACK_LOCALE, MESSAGES, render, resolve_locale


class TestResolveLocale:
    def test_supported_locale(self):
        assert resolve_locale("de") == "de"

    def test_case_insensitive(self):
        assert resolve_locale("EN") == "en"

    def test_unknown_falls_back_to_default(self):
        assert resolve_locale("fr") == get_settings().default_locale

    def test_none_falls_back_to_default(self):
        assert resolve_locale(None) == "tr"

    def test_unsupported_default_falls_back_to_english(self, monkeypatch):
        monkeypatch.setenv("MONO_DEFAULT_LOCALE", "xx")
        get_settings.cache_clear()
        assert resolve_locale(None) == FALLBACK_LOCALE


class TestRender:
    def test_every_locale_has_every_key(self):
        keys = set(MESSAGES[FALLBACK_LOCALE])
        for locale, catalog in MESSAGES.items():
            assert set(catalog) == keys, locale

    def test_budget_warning_mentions_category(self):
        title, body = render("budget_warning", "en", category="Market")
        assert title
        assert "Market" in body

    def test_large_transaction_formats_amount(self):
        _, body = render("large_transaction", "en", amount="750.00", category="Rent")
        assert "750.00" in body
        assert "Rent" in body

    def test_level_up(self):
        _, body = render("level_up", "en", level=3)
        assert "level 3" in body

    def test_unknown_key_raises(self):
        with pytest.raises(KeyError):
            render("no_such_message", "en")
