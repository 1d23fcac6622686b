"""
Unit tests for the audit logger.
"""

import logging
import pytest

from kolla.utils.audit_log import (
    client_ip,
    log_auth_event,
    log_rejected_callback,
    log_sensitive_operation
)


class FakeRequest:
    def __init__(self, headers=None, host="10.0.0.5"):
        self.headers = headers or {}
        self.client = type("Client", (), {"host": host})()


@pytest.mark.unit
class TestAuditLog:
    """Test audit line format and levels."""

    def test_forwarded_ip_wins(self):
        request = FakeRequest({"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

        assert client_ip(request) == "203.0.113.9"
        assert client_ip(FakeRequest()) == "10.0.0.5"
        assert client_ip(None) == "unknown"

    def test_anonymous_operation(self, caplog):
        caplog.set_level(logging.INFO, logger="audit")

        log_sensitive_operation("clip_uploaded_via_link", None, 3, details="clip 7")

        record = caplog.records[-1]
        assert record.levelno == logging.INFO
        assert record.getMessage() == (
            "SENSITIVE_OP | CLIP_UPLOADED_VIA_LINK | user_id=anonymous | team_id=3 | ip=unknown | details=clip 7"
        )

    def test_rejected_callback_is_warning(self, caplog):
        caplog.set_level(logging.INFO, logger="audit")

        log_rejected_callback("process_callback", FakeRequest(), reason="bad job secret")

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "channel=process_callback" in record.getMessage()
        assert record.getMessage().endswith("reason=bad job secret")

    def test_auth_failure_level(self, caplog):
        caplog.set_level(logging.INFO, logger="audit")

        log_auth_event("token_rejected", None, False)
        log_auth_event("user_provisioned", "sub-1", True)

        assert [r.levelno for r in caplog.records[-2:]] == [logging.WARNING, logging.INFO]
        assert "subject=N/A" in caplog.records[-2].getMessage()
