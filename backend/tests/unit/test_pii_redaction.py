"""Tests for PII redaction in request and audit logging."""

import pytest
from unittest.mock import Mock

from app.middleware.request_logging import AuditLogMiddleware
from app.utils.logging_utils import redact_email, redact_ip


@pytest.mark.unit
class TestRedactEmail:
    """Tests for redact_email."""

    def test_keeps_first_letter_and_domain(self):
        assert redact_email("user@example.com") == "u***@example.com"

    def test_short_local_part_is_hashed(self):
        result = redact_email("ab@example.com")
        assert result.startswith("hash:")
        assert result.endswith("@example.com")
        assert "ab@" not in result

    def test_not_an_email_is_hashed(self):
        assert redact_email("not-an-email").startswith("hash:")

    def test_missing_email(self):
        assert redact_email(None) == "N/A"
        assert redact_email("") == "N/A"


@pytest.mark.unit
class TestRedactIp:
    """Tests for redact_ip."""

    def test_ipv4_last_octet_masked(self):
        assert redact_ip("192.168.1.100") == "192.168.1.***"

    def test_ipv6_keeps_prefix(self):
        assert redact_ip("2001:db8:85a3:0:0:8a2e:370:7334") == "2001:db8:85a3:***"

    def test_unrecognized_value_is_hashed(self):
        result = redact_ip("testclient")
        assert result.startswith("hash:")
        assert len(result) == len("hash:") + 6

    def test_missing_ip(self):
        assert redact_ip(None) == "N/A"


@pytest.mark.unit
class TestAuditLogMiddleware:
    """Tests for deciding which requests are audited."""

    @pytest.fixture
    def middleware(self):
        return AuditLogMiddleware(Mock())

    @pytest.mark.parametrize(
        "method,path,expected",
        [
            ("POST", "/api/v1/imports/upload", "IMPORT_UPLOAD"),
            ("POST", "/api/v1/imports/abc/execute", "IMPORT_EXECUTE"),
            ("PUT", "/api/v1/imports/abc/mapping/", "IMPORT_MAPPING"),
            ("DELETE", "/api/v1/imports/abc", "IMPORT_DELETE"),
            ("GET", "/api/v1/imports/abc", None),
            ("POST", "/api/v1/imports/abc/preview", None),
            ("DELETE", "/health", None),
        ],
    )
    def test_audit_type(self, middleware, method, path, expected):
        assert middleware._audit_type(method, path) == expected
