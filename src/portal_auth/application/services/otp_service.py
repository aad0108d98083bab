"""One-time passcode issue and verification for email, phone and password reset."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from uuid import UUID

from portal_auth.application.ports.app_settings_port import AppSettingsPort
from portal_auth.application.ports.notification_port import NotificationSenderPort
from portal_auth.application.ports.otp_repository_port import (
    OtpCreateInput,
    OtpRecord,
    OtpRepositoryPort,
)
from portal_auth.config.policy import AuthPolicy
from portal_auth.domain.auth.errors import (
    FeatureDisabledError,
    OtpAttemptsExceededError,
    OtpExpiredError,
    OtpMismatchError,
    OtpNotFoundError,
    ProviderError,
)
from portal_auth.domain.auth.otp import (
    OtpChannel,
    OtpPurpose,
    OtpTarget,
    require_channel_for_purpose,
)
from portal_auth.domain.redaction import mask_target

NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)

EMAIL_VERIFICATION_ENABLED_KEY = "email_verification_enabled"
PHONE_VERIFICATION_ENABLED_KEY = "phone_verification_enabled"
OTP_LENGTH_KEY = "otp_length"
OTP_EXPIRY_MINUTES_KEY = "otp_expiry_minutes"

_EMAIL_TEMPLATES = {
    OtpPurpose.EMAIL_VERIFICATION: "email_verification",
    OtpPurpose.PASSWORD_RESET: "password_reset",
}
_SMS_MESSAGE = "Your verification code is {code}. Expires in {minutes} min."


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def generate_numeric_code(length: int) -> str:
    """Return a uniformly random numeric code of the given length."""

    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def hash_code(code: str) -> str:
    return hashlib.sha256(code.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class OtpSendResult:
    """Outcome of a successful send; the code itself is never returned."""

    otp_id: int
    expires_at: datetime
    code_length: int


@dataclass(frozen=True)
class _OtpKnobs:
    length: int
    ttl: timedelta


class OtpEngine:
    """Generate, persist, dispatch and verify one-time passcodes."""

    def __init__(
        self,
        *,
        otps: OtpRepositoryPort,
        notifier: NotificationSenderPort,
        app_settings: AppSettingsPort,
        policy: AuthPolicy,
        now: NowCallable = _utc_now,
    ) -> None:
        self._otps = otps
        self._notifier = notifier
        self._app_settings = app_settings
        self._policy = policy
        self._now = now

    async def send(
        self,
        target: OtpTarget,
        purpose: OtpPurpose,
        *,
        user_id: UUID | None = None,
        display_name: str | None = None,
    ) -> OtpSendResult:
        """Persist a new code for the target and purpose and dispatch it.

        The record is kept even when dispatch fails, in which case
        ``ProviderError`` is raised and the caller may request a resend.
        """

        require_channel_for_purpose(target=target, purpose=purpose)
        await self._require_channel_enabled(target=target, purpose=purpose)
        knobs = await self._load_knobs()

        code = generate_numeric_code(knobs.length)
        expires_at = self._now() + knobs.ttl
        record = await self._otps.create_superseding(
            OtpCreateInput(
                target=target.address,
                channel=target.channel,
                purpose=purpose,
                code_hash=hash_code(code),
                expires_at=expires_at,
                user_id=user_id,
            )
        )

        minutes = str(max(1, int(knobs.ttl.total_seconds() // 60)))
        try:
            if target.channel is OtpChannel.EMAIL:
                await self._notifier.send_email(
                    to=target.address,
                    template_kind=_EMAIL_TEMPLATES[purpose],
                    variables={
                        "name": display_name or "User",
                        "otp": code,
                        "expiryMinutes": minutes,
                    },
                )
            else:
                await self._notifier.send_sms(
                    to=target.address,
                    message=_SMS_MESSAGE.format(code=code, minutes=minutes),
                )
        except Exception as error:  # noqa: BLE001
            logger.error(
                "otp_dispatch_failed target=%s purpose=%s otp_id=%s error_type=%s",
                mask_target(target.address),
                purpose.value,
                record.id,
                type(error).__name__,
            )
            raise ProviderError() from error

        logger.info(
            "otp_sent target=%s purpose=%s otp_id=%s",
            mask_target(target.address),
            purpose.value,
            record.id,
        )
        return OtpSendResult(otp_id=record.id, expires_at=expires_at, code_length=knobs.length)

    async def verify(
        self,
        target: OtpTarget,
        purpose: OtpPurpose,
        submitted_code: str,
    ) -> OtpRecord:
        """Verify a submitted code against the newest open record.

        Returns the verified record. Each call against an open record counts
        one attempt; once ``otp_max_attempts`` is reached the record can no
        longer be verified and a new code must be sent.
        """

        record = await self._otps.find_latest_unverified(target=target.address, purpose=purpose)
        if record is None:
            raise OtpNotFoundError()

        now = self._now()
        if record.expires_at <= now:
            raise OtpExpiredError()

        max_attempts = self._policy.otp_max_attempts
        if record.attempts >= max_attempts:
            logger.warning(
                "otp_attempts_exhausted target=%s purpose=%s otp_id=%s",
                mask_target(target.address),
                purpose.value,
                record.id,
            )
            raise OtpAttemptsExceededError()

        matched = hmac.compare_digest(hash_code(submitted_code.strip()), record.code_hash)
        updated = await self._otps.record_attempt(
            otp_id=record.id,
            matched=matched,
            max_attempts=max_attempts,
            now=now,
        )
        if updated is None:
            # Another writer changed the record first: it expired and was swept,
            # a concurrent verify used it up, or a resend superseded it.
            if record.expires_at <= self._now():
                raise OtpExpiredError()
            if record.attempts + 1 >= max_attempts:
                raise OtpAttemptsExceededError()
            raise OtpNotFoundError()

        if not matched:
            remaining = max(0, max_attempts - updated.attempts)
            logger.info(
                "otp_mismatch target=%s purpose=%s otp_id=%s attempts=%s remaining=%s",
                mask_target(target.address),
                purpose.value,
                record.id,
                updated.attempts,
                remaining,
            )
            raise OtpMismatchError(remaining_attempts=remaining)

        logger.info(
            "otp_verified target=%s purpose=%s otp_id=%s",
            mask_target(target.address),
            purpose.value,
            record.id,
        )
        return updated

    async def sweep(self) -> int:
        """Delete expired or already verified records."""

        deleted = await self._otps.delete_expired(now=self._now())
        if deleted:
            logger.info("otp_sweep_deleted count=%s", deleted)
        return deleted

    async def is_channel_enabled(self, channel: OtpChannel) -> bool:
        """Return whether the verification toggle for a channel is on."""

        if channel is OtpChannel.EMAIL:
            return await self._flag(EMAIL_VERIFICATION_ENABLED_KEY, default=True)
        return await self._flag(PHONE_VERIFICATION_ENABLED_KEY, default=False)

    async def _require_channel_enabled(self, *, target: OtpTarget, purpose: OtpPurpose) -> None:
        if purpose is OtpPurpose.PASSWORD_RESET:
            return
        if not await self.is_channel_enabled(target.channel):
            raise FeatureDisabledError(feature=f"{target.channel.value} verification")

    async def _flag(self, key: str, *, default: bool) -> bool:
        raw = await self._app_settings.get_value(key=key)
        if raw is None:
            return default
        return raw.strip().lower() == "true"

    async def _load_knobs(self) -> _OtpKnobs:
        length = await self._int_setting(OTP_LENGTH_KEY, minimum=4, maximum=10)
        minutes = await self._int_setting(OTP_EXPIRY_MINUTES_KEY, minimum=1, maximum=24 * 60)
        return _OtpKnobs(
            length=self._policy.otp_length if length is None else length,
            ttl=self._policy.otp_ttl if minutes is None else timedelta(minutes=minutes),
        )

    async def _int_setting(self, key: str, *, minimum: int, maximum: int) -> int | None:
        raw = await self._app_settings.get_value(key=key)
        if raw is None:
            return None
        try:
            value = int(raw.strip())
        except ValueError:
            logger.warning("app_setting_invalid key=%s", key)
            return None
        if not minimum <= value <= maximum:
            logger.warning("app_setting_out_of_range key=%s value=%s", key, value)
            return None
        return value
