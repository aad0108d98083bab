"""Runtime settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from portal_auth.domain.auth.durations import parse_duration

NonEmptyStr = Annotated[str, Field(min_length=1)]
SigningSecret = Annotated[str, Field(min_length=32)]
PositiveInt = Annotated[int, Field(gt=0)]
PositiveFloat = Annotated[float, Field(gt=0.0)]


class Settings(BaseSettings):
    """Environment-driven credential-core settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: NonEmptyStr = Field(validation_alias="DATABASE_URL")
    jwt_access_secret: SigningSecret = Field(validation_alias="JWT_ACCESS_SECRET")
    jwt_refresh_secret: SigningSecret = Field(validation_alias="JWT_REFRESH_SECRET")
    jwt_access_ttl: NonEmptyStr = Field(default="15m", validation_alias="JWT_ACCESS_TTL")
    jwt_refresh_ttl: NonEmptyStr = Field(default="7d", validation_alias="JWT_REFRESH_TTL")
    jwt_issuer: NonEmptyStr = Field(default="portal-auth", validation_alias="JWT_ISSUER")
    field_encryption_key: SigningSecret | None = Field(
        default=None,
        validation_alias="FIELD_ENCRYPTION_KEY",
    )
    bcrypt_rounds: Annotated[int, Field(ge=4, le=31)] = Field(
        default=12,
        validation_alias="BCRYPT_ROUNDS",
    )
    otp_length: Annotated[int, Field(ge=4, le=10)] = Field(
        default=6,
        validation_alias="OTP_LENGTH",
    )
    otp_ttl_minutes: PositiveInt = Field(default=10, validation_alias="OTP_TTL_MINUTES")
    otp_max_attempts: PositiveInt = Field(default=5, validation_alias="OTP_MAX_ATTEMPTS")
    maintenance_sweep_interval_seconds: PositiveFloat = Field(
        default=300.0,
        validation_alias="MAINTENANCE_SWEEP_INTERVAL_SECONDS",
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("jwt_access_ttl", "jwt_refresh_ttl")
    @classmethod
    def _validate_duration(cls, value: str) -> str:
        parse_duration(value)
        return value

    @field_validator("field_encryption_key", mode="before")
    @classmethod
    def _blank_key_means_unset(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Load and cache application settings."""

    return Settings()  # type: ignore[call-arg]
