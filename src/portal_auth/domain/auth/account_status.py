"""Account lifecycle status values."""

from __future__ import annotations

from enum import StrEnum


class AccountStatus(StrEnum):
    """Supported user account states."""

    ACTIVE = "ACTIVE"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"
