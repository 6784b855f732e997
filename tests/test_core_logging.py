"""Tests for the sanitizing log filter.

Covers: redaction of enrichment keys, pass-through of app identifiers,
args interpolation, handler-level installation.
"""

from __future__ import annotations

import logging

import pytest

from focusledger.core.logging import SanitizingFilter, install_sanitizing_filter, redact_message


class TestRedactMessage:
    @pytest.mark.parametrize("key", ["tab_title", "tab_url", "site_domain", "url"])
    def test_sensitive_keys_redacted(self, key: str) -> None:
        out = redact_message(f"{key}=secret-value next")
        assert "secret-value" not in out
        assert f"{key}=[REDACTED]" in out

    def test_quoted_values(self) -> None:
        out = redact_message('tab_title: "Bank statement - March"')
        assert "Bank statement" not in out

    def test_app_id_untouched(self) -> None:
        msg = "app_id=com.apple.Terminal switched"
        assert redact_message(msg) == msg


class TestSanitizingFilter:
    def test_interpolated_args_are_redacted(self) -> None:
        record = logging.LogRecord(
            "x", logging.INFO, __file__, 1, "resolved tab_url=%s for %s", ("https://bank", "ev1"), None,
        )
        assert SanitizingFilter().filter(record)
        assert "https://bank" not in record.getMessage()
        assert "ev1" in record.getMessage()

    def test_install_on_handlers(self) -> None:
        logger = logging.getLogger("focusledger.test.sanitize")
        handler = logging.StreamHandler()
        logger.addHandler(handler)
        try:
            filt = install_sanitizing_filter(logger, handler_level=True)
            assert filt in handler.filters
            assert filt not in logger.filters
        finally:
            logger.removeHandler(handler)

    def test_install_on_logger(self) -> None:
        logger = logging.getLogger("focusledger.test.sanitize2")
        filt = install_sanitizing_filter(logger)
        try:
            assert filt in logger.filters
        finally:
            logger.removeFilter(filt)


class TestBareUrls:
    def test_url_in_free_text_is_redacted(self) -> None:
        out = redact_message("resolver returned https://bank.example/statement?id=7 for ev1")
        assert "bank.example" not in out
        assert out.endswith("for ev1")

    def test_metadata_repr_is_redacted(self) -> None:
        from focusledger.core.types import EventMetadata

        out = redact_message(repr(EventMetadata(tab_title="Payroll", site_domain="corp.example")))
        assert "Payroll" not in out
        assert "corp.example" not in out
