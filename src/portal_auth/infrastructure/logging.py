"""Shared logging configuration helpers for long-running processes."""

from __future__ import annotations

import logging
import re

from portal_auth.domain.redaction import mask_email, mask_phone, mask_target

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_REDACTED = "[REDACTED]"
_SECRET_KEY_MARKERS = ("password", "token", "secret", "tfn", "abn", "code", "api_key")
_FIELD_PATTERN = re.compile(r"\b(?P<key>[A-Za-z_]+)=(?P<value>[^\s,]+)")


def _redact_field(match: re.Match[str]) -> str:
    key = match.group("key")
    value = match.group("value")
    lowered = key.lower()
    if any(marker in lowered for marker in _SECRET_KEY_MARKERS):
        return f"{key}={_REDACTED}"
    if "email" in lowered and "@" in value:
        return f"{key}={mask_email(value)}"
    if "phone" in lowered:
        return f"{key}={mask_phone(value)}"
    if lowered == "target":
        return f"{key}={mask_target(value)}"
    return match.group(0)


def redact_message(message: str) -> str:
    """Mask personal data and secrets in ``key=value`` log fields."""

    return _FIELD_PATTERN.sub(_redact_field, message)


class RedactingFilter(logging.Filter):
    """Rewrite log records so secrets and PII never reach handlers."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_message(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(*, level: str) -> None:
    """Configure process logging with consistent format, level and redaction."""

    normalized_level = level.strip().upper() if level.strip() else "INFO"
    resolved_level = getattr(logging, normalized_level, logging.INFO)

    logging.basicConfig(
        level=resolved_level,
        format=_LOG_FORMAT,
    )
    redacting_filter = RedactingFilter()
    for handler in logging.getLogger().handlers:
        if not any(isinstance(existing, RedactingFilter) for existing in handler.filters):
            handler.addFilter(redacting_filter)
