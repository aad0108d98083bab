"""Periodic cleanup of expired OTP records and stale refresh tokens."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from portal_auth.application.ports.otp_repository_port import OtpRepositoryPort
from portal_auth.application.ports.refresh_token_repository_port import (
    RefreshTokenRepositoryPort,
)

SleepCallable = Callable[[float], Awaitable[None]]
NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class SweepResult:
    """Rows removed by one maintenance pass."""

    otp_records_deleted: int
    refresh_tokens_deleted: int


class CredentialMaintenanceService:
    """Delete-only sweep that never blocks live verification traffic."""

    def __init__(
        self,
        *,
        otps: OtpRepositoryPort,
        refresh_tokens: RefreshTokenRepositoryPort,
        interval_seconds: float = 300.0,
        sleep: SleepCallable = asyncio.sleep,
        now: NowCallable = _utc_now,
    ) -> None:
        self._otps = otps
        self._refresh_tokens = refresh_tokens
        self._interval_seconds = interval_seconds
        self._sleep = sleep
        self._now = now

    async def run_once(self) -> SweepResult:
        """Delete expired/verified OTPs and revoked/expired refresh tokens."""

        now = self._now()
        otp_deleted = await self._otps.delete_expired(now=now)
        tokens_deleted = await self._refresh_tokens.delete_stale(now=now)
        logger.info(
            "credential_sweep_complete otp_deleted=%s refresh_rows_deleted=%s",
            otp_deleted,
            tokens_deleted,
        )
        return SweepResult(
            otp_records_deleted=otp_deleted,
            refresh_tokens_deleted=tokens_deleted,
        )

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        """Sweep on a fixed interval until stop_event is set."""

        while not stop_event.is_set():
            try:
                await self.run_once()
            except Exception:  # noqa: BLE001
                logger.exception("credential_sweep_failed")
            await self._sleep(self._interval_seconds)
