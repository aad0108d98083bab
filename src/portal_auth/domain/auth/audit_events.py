"""Audit event names emitted by the credential core."""

from __future__ import annotations

from enum import StrEnum


class AuditEventType(StrEnum):
    """Security-relevant events appended to the audit trail."""

    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    LOGOUT_ALL = "LOGOUT_ALL"
    TOKEN_REFRESH_REJECTED = "TOKEN_REFRESH_REJECTED"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    PASSWORD_RESET = "PASSWORD_RESET"
    ACCESS_DENIED = "ACCESS_DENIED"
