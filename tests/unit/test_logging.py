"""
Tests for log redaction and context binding.
"""

import structlog

from reqai.core.logging import REDACTED, LogContext, bind_context, clear_context, redact_secrets


class TestRedaction:
    """Credential masking processor."""

    def test_top_level_secrets_are_masked(self) -> None:
        event = redact_secrets(
            None, "info", {"event": "Token refreshed", "access_token": "at-1", "cloud_id": "c"}
        )

        assert event["access_token"] == REDACTED
        assert event["cloud_id"] == "c"

    def test_nested_secrets_are_masked(self) -> None:
        event = redact_secrets(
            None, "info", {"event": "Exchange", "body": {"code": "c0de", "grant_type": "x"}}
        )

        assert event["body"] == {"code": REDACTED, "grant_type": "x"}

    def test_empty_values_stay_empty(self) -> None:
        event = redact_secrets(None, "info", {"event": "Logout", "refresh_token": None})

        assert event["refresh_token"] is None


class TestContext:
    """contextvars binding helpers."""

    def test_log_context_unbinds_on_exit(self) -> None:
        clear_context()
        bind_context(request_id="req_1")

        with LogContext(session_id="sess_1"):
            inside = structlog.contextvars.get_contextvars()

        assert inside == {"request_id": "req_1", "session_id": "sess_1"}
        assert structlog.contextvars.get_contextvars() == {"request_id": "req_1"}
        clear_context()
