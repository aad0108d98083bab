"""Port for refresh token persistence and revocation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID


@dataclass(frozen=True)
class RefreshTokenCreateInput:
    """Input payload for inserting a refresh token row."""

    user_id: UUID
    token_hash: str
    expires_at: datetime


@dataclass(frozen=True)
class RefreshTokenRecord:
    """Persisted refresh token model; the raw token value is never stored."""

    id: int
    user_id: UUID
    token_hash: str
    issued_at: datetime
    expires_at: datetime
    revoked_at: datetime | None

    def is_active(self, *, now: datetime) -> bool:
        return self.revoked_at is None and self.expires_at > now


class RefreshTokenRepositoryPort(Protocol):
    """Refresh token persistence contract."""

    async def create_token(self, payload: RefreshTokenCreateInput) -> RefreshTokenRecord:
        """Persist a new refresh token row."""

    async def get_by_hash(self, *, token_hash: str) -> RefreshTokenRecord | None:
        """Return the row for a hash regardless of revocation or expiry."""

    async def get_active_by_hash(self, *, token_hash: str) -> RefreshTokenRecord | None:
        """Return the row for a hash only when not revoked and not expired."""

    async def revoke_by_hash(self, *, token_hash: str) -> bool:
        """Revoke one row only if still unrevoked; return whether this call revoked it."""

    async def rotate(
        self,
        *,
        token_hash: str,
        replacement: RefreshTokenCreateInput,
    ) -> RefreshTokenRecord | None:
        """Revoke an unrevoked row and insert its replacement in one transaction.

        Returns None and inserts nothing when the row was already revoked.
        """

    async def revoke_active_tokens_for_user(self, *, user_id: UUID) -> int:
        """Revoke all currently non-revoked tokens for one user and return affected count."""

    async def delete_stale(self, *, now: datetime) -> int:
        """Delete revoked or expired rows and return the deleted count."""
