"""Port for one-time passcode persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from portal_auth.domain.auth.otp import OtpChannel, OtpPurpose


@dataclass(frozen=True)
class OtpCreateInput:
    """Input payload for inserting an OTP record."""

    target: str
    channel: OtpChannel
    purpose: OtpPurpose
    code_hash: str
    expires_at: datetime
    user_id: UUID | None = None


@dataclass(frozen=True)
class OtpRecord:
    """Persisted OTP model; only a digest of the code is stored."""

    id: int
    target: str
    channel: OtpChannel
    purpose: OtpPurpose
    user_id: UUID | None
    code_hash: str
    attempts: int
    created_at: datetime
    expires_at: datetime
    verified_at: datetime | None


class OtpRepositoryPort(Protocol):
    """OTP persistence contract."""

    async def create_superseding(self, payload: OtpCreateInput) -> OtpRecord:
        """Insert a record and delete prior unverified ones for the same target and purpose."""

    async def find_latest_unverified(
        self,
        *,
        target: str,
        purpose: OtpPurpose,
    ) -> OtpRecord | None:
        """Return the newest unverified record, expired or not."""

    async def record_attempt(
        self,
        *,
        otp_id: int,
        matched: bool,
        max_attempts: int,
        now: datetime,
    ) -> OtpRecord | None:
        """Atomically count one attempt and mark verified on match.

        Returns None when the record was no longer open (verified, expired,
        deleted or out of attempts) at update time.
        """

    async def delete_expired(self, *, now: datetime) -> int:
        """Delete expired or verified records and return the deleted count."""
