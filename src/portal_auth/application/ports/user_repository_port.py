"""Port for user lookup and credential updates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from portal_auth.domain.auth.account_status import AccountStatus


@dataclass(frozen=True)
class UserRecord:
    """User persistence model."""

    user_id: UUID
    email: str
    phone: str | None
    password_hash: str
    status: AccountStatus
    created_at: datetime
    updated_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status is AccountStatus.ACTIVE


class UserRepositoryPort(Protocol):
    """User repository contract."""

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id, including inactive users."""

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        """Return user by normalized email, including inactive users."""

    async def get_by_phone(self, *, phone: str) -> UserRecord | None:
        """Return user by normalized phone, including inactive users."""

    async def update_password_hash(self, *, user_id: UUID, password_hash: str) -> bool:
        """Store a new password hash and return whether the user existed."""
