from __future__ import annotations

import logging

from portal_auth.domain.redaction import mask_email, mask_phone, mask_target
from portal_auth.infrastructure.logging import RedactingFilter, configure_logging, redact_message


def test_mask_helpers_hide_personal_data() -> None:
    assert mask_email("pat.smith@example.com") == "pa***@example.com"
    assert mask_email("not-an-email") == "***"
    assert mask_phone("+61412345678") == "********5678"
    assert mask_phone("123") == "***"
    assert mask_target("pat@example.com") == "pa***@example.com"
    assert mask_target("+61412345678") == "********5678"


def test_redact_message_masks_secret_fields() -> None:
    message = (
        "login attempt password=hunter2 refresh_token=abc123 "
        "tfn=123456782 otp_code=654321 user_id=42"
    )

    redacted = redact_message(message)

    assert "hunter2" not in redacted
    assert "abc123" not in redacted
    assert "123456782" not in redacted
    assert "654321" not in redacted
    assert "password=[REDACTED]" in redacted
    assert "user_id=42" in redacted


def test_redact_message_masks_contact_fields() -> None:
    redacted = redact_message(
        "otp_sent target=+61412345678 email=pat@example.com phone=+61400111222 otp_id=7"
    )

    assert redacted == (
        "otp_sent target=********5678 email=pa***@example.com phone=********1222 otp_id=7"
    )


def test_redacting_filter_rewrites_record_message() -> None:
    record = logging.LogRecord(
        name="portal_auth.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="session_tokens_issued access_token=%s user_id=%s",
        args=("eyJhbGciOi", "42"),
        exc_info=None,
    )

    assert RedactingFilter().filter(record) is True
    assert record.getMessage() == "session_tokens_issued access_token=[REDACTED] user_id=42"


def test_configure_logging_installs_filter_once() -> None:
    configure_logging(level="debug")
    configure_logging(level="debug")

    root = logging.getLogger()
    for handler in root.handlers:
        filters = [item for item in handler.filters if isinstance(item, RedactingFilter)]
        assert len(filters) == 1
