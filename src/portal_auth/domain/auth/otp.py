"""One-time passcode purposes, channels and targets."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from portal_auth.domain.auth.credentials import normalize_user_email, normalize_user_phone


class OtpChannel(StrEnum):
    """Delivery channel for a one-time passcode."""

    EMAIL = "email"
    PHONE = "phone"


class OtpPurpose(StrEnum):
    """What a verified code proves."""

    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PHONE_VERIFICATION = "PHONE_VERIFICATION"
    PASSWORD_RESET = "PASSWORD_RESET"


_ALLOWED_CHANNELS: dict[OtpPurpose, frozenset[OtpChannel]] = {
    OtpPurpose.EMAIL_VERIFICATION: frozenset({OtpChannel.EMAIL}),
    OtpPurpose.PHONE_VERIFICATION: frozenset({OtpChannel.PHONE}),
    OtpPurpose.PASSWORD_RESET: frozenset({OtpChannel.EMAIL, OtpChannel.PHONE}),
}


@dataclass(frozen=True)
class OtpTarget:
    """Normalized email address or phone number a code is bound to."""

    channel: OtpChannel
    address: str

    @classmethod
    def email(cls, address: str) -> OtpTarget:
        return cls(channel=OtpChannel.EMAIL, address=normalize_user_email(email=address))

    @classmethod
    def phone(cls, number: str) -> OtpTarget:
        return cls(channel=OtpChannel.PHONE, address=normalize_user_phone(phone=number))


def require_channel_for_purpose(*, target: OtpTarget, purpose: OtpPurpose) -> None:
    """Reject purpose/channel pairs such as phone verification sent by email."""

    if target.channel not in _ALLOWED_CHANNELS[purpose]:
        raise ValueError(f"{purpose.value} cannot be delivered via {target.channel.value}")
