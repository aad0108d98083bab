"""Immutable security policy shared by the credential-core services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from portal_auth.config.settings import Settings
from portal_auth.domain.auth.durations import parse_duration
from portal_auth.domain.auth.errors import ConfigurationError

MIN_SECRET_LENGTH = 32


def require_secret(*, name: str, value: str | None) -> str:
    """Return a secret or fail fast when it is missing or too short."""

    if not value:
        raise ConfigurationError(f"{name} is not configured")
    if len(value) < MIN_SECRET_LENGTH:
        raise ConfigurationError(f"{name} must be at least {MIN_SECRET_LENGTH} characters")
    return value


@dataclass(frozen=True)
class AuthPolicy:
    """Key material and lifetimes, built once at startup and injected."""

    access_token_secret: str = field(repr=False)
    refresh_token_secret: str = field(repr=False)
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    issuer: str = "portal-auth"
    bcrypt_rounds: int = 12
    otp_length: int = 6
    otp_ttl: timedelta = timedelta(minutes=10)
    otp_max_attempts: int = 5
    field_encryption_key: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        require_secret(name="access token secret", value=self.access_token_secret)
        require_secret(name="refresh token secret", value=self.refresh_token_secret)
        if self.field_encryption_key is not None:
            require_secret(name="field encryption key", value=self.field_encryption_key)
        if self.access_token_ttl <= timedelta(0) or self.refresh_token_ttl <= timedelta(0):
            raise ConfigurationError("token lifetimes must be positive")
        if not 4 <= self.otp_length <= 10:
            raise ConfigurationError("otp length must be between 4 and 10")
        if self.otp_ttl <= timedelta(0):
            raise ConfigurationError("otp lifetime must be positive")
        if self.otp_max_attempts < 1:
            raise ConfigurationError("otp max attempts must be at least 1")

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthPolicy:
        return cls(
            access_token_secret=settings.jwt_access_secret,
            refresh_token_secret=settings.jwt_refresh_secret,
            access_token_ttl=parse_duration(settings.jwt_access_ttl),
            refresh_token_ttl=parse_duration(settings.jwt_refresh_ttl),
            issuer=settings.jwt_issuer,
            bcrypt_rounds=settings.bcrypt_rounds,
            otp_length=settings.otp_length,
            otp_ttl=timedelta(minutes=settings.otp_ttl_minutes),
            otp_max_attempts=settings.otp_max_attempts,
            field_encryption_key=settings.field_encryption_key,
        )
