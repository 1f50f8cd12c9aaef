"""Unit tests for structured logging and correlation scopes."""

import asyncio
import logging
import re

import pytest

from rage_sdk.observability.logging import (
    RageLogger,
    configure_logging,
    correlation_scope,
    current_context,
    current_correlation_id,
    generate_correlation_id,
    sanitize_fields,
)
from rage_sdk.reliability.errors import NetworkError


class TestCorrelation:

    def test_generated_format(self):
        assert re.match(r"^rage_\d{13}_[0-9a-f]{9}$", generate_correlation_id())
        assert generate_correlation_id("chat").startswith("chat_")
        assert generate_correlation_id() != generate_correlation_id()

    def test_scope_restores_previous_binding(self):
        assert current_correlation_id() is None
        with correlation_scope("outer", user_id="u1"):
            with correlation_scope("inner"):
                assert current_correlation_id() == "inner"
            assert current_correlation_id() == "outer"
            assert current_context()["user_id"] == "u1"
        assert current_correlation_id() is None

    def test_scope_cleared_on_error(self):
        with pytest.raises(RuntimeError):
            with correlation_scope("failing"):
                raise RuntimeError("boom")
        assert current_correlation_id() is None

    @pytest.mark.asyncio
    async def test_concurrent_tasks_are_isolated(self):
        async def worker(cid):
            with correlation_scope(cid):
                await asyncio.sleep(0.01)
                return current_correlation_id()

        ids = [f"rage_{i}" for i in range(10)]
        assert await asyncio.gather(*(worker(cid) for cid in ids)) == ids


class TestSanitizeFields:

    def test_masks_sensitive_keys(self):
        fields = sanitize_fields({
            "api_key": "eyJhbGciOiJIUzI1NiJ9.payload.sig",
            "password": "hunter2",
            "user_email": None,
            "query_length": 12,
        })
        assert fields["api_key"] == "eyJh***.sig"
        assert fields["password"] == "***"
        assert fields["user_email"] is None
        assert fields["query_length"] == 12


class TestRageLogger:

    def test_format_includes_component_and_scope(self, caplog):
        caplog.set_level(logging.DEBUG, logger="rage_sdk")
        logger = RageLogger("interceptor")

        with correlation_scope("rage_1_abc"):
            logger.info("Context enrichment complete", documents=2, skipped=None)

        message = caplog.records[-1].getMessage()
        assert message == "[component=interceptor documents=2 correlation_id=rage_1_abc] Context enrichment complete"

    def test_secrets_are_masked(self, caplog):
        caplog.set_level(logging.DEBUG, logger="rage_sdk")
        RageLogger("http_client").debug("Request", token="abcdefghijklmnop")

        message = caplog.records[-1].getMessage()
        assert "abcdefghijklmnop" not in message
        assert "token=abcd***mnop" in message

    def test_error_includes_error_kind(self, caplog):
        caplog.set_level(logging.DEBUG, logger="rage_sdk")
        RageLogger("interceptor").error("Failed", error=NetworkError("connection refused"))

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert "error_type=network_error" in record.getMessage()

    def test_audit_only_when_enabled(self, caplog):
        caplog.set_level(logging.DEBUG, logger="rage_sdk")
        RageLogger("interceptor").audit("retrieval")
        assert not any("AUDIT" in r.getMessage() for r in caplog.records)

        RageLogger("interceptor", audit_enabled=True).audit("retrieval", results=3)
        assert "AUDIT retrieval" in caplog.records[-1].getMessage()

    def test_timer_reports_duration(self, caplog):
        caplog.set_level(logging.DEBUG, logger="rage_sdk")
        with RageLogger("formatter").timer("format") as result:
            pass
        assert result["duration_ms"] >= 0
        assert "format finished" in caplog.records[-1].getMessage()

    @pytest.mark.parametrize("level,debug,expected", [
        ("error", False, logging.ERROR),
        ("warn", False, logging.WARNING),
        ("verbose", False, logging.DEBUG),
        ("info", True, logging.DEBUG),
    ])
    def test_configure_logging(self, level, debug, expected):
        package_logger = logging.getLogger("rage_sdk")
        previous = package_logger.level
        try:
            assert configure_logging(level, debug).level == expected
        finally:
            package_logger.setLevel(previous)
