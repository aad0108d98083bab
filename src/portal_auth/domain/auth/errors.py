"""Failure kinds raised by the credential and secret-lifecycle core.

Every error carries a stable ``code`` for audit logging. Messages are generic
and never include secrets, raw tokens, OTP codes or decrypted field values.
Each kind also derives from the builtin exception family that fits it, so
callers that only know builtins can still catch them.
"""

from __future__ import annotations

from collections.abc import Iterable


class PortalAuthError(Exception):
    """Base class for all credential-core failures."""

    code = "auth_error"
    default_message = "authentication error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ConfigurationError(PortalAuthError, RuntimeError):
    """Raised when a required secret or key is missing or too short."""

    code = "configuration_error"
    default_message = "security configuration is missing or invalid"


class InvalidCredentialsError(PortalAuthError, PermissionError):
    """Raised on any login failure; never says which part was wrong."""

    code = "invalid_credentials"
    default_message = "invalid email or password"


class NotAuthenticatedError(PortalAuthError, PermissionError):
    """Raised when a protected action is attempted without an identity."""

    code = "not_authenticated"
    default_message = "authentication required"


class TokenError(PortalAuthError, PermissionError):
    """Base class for access/refresh token failures."""

    code = "token_error"
    default_message = "please sign in again"


class InvalidTokenError(TokenError):
    """Raised when a token is unknown, malformed or badly signed."""

    code = "token_invalid"


class ExpiredTokenError(TokenError):
    """Raised when a token is past its expiry."""

    code = "token_expired"


class RevokedTokenError(TokenError):
    """Raised when a refresh token was already revoked or rotated."""

    code = "token_revoked"


class IntegrityError(PortalAuthError, ValueError):
    """Raised when an encrypted field fails authentication or is malformed."""

    code = "field_integrity"
    default_message = "encrypted field failed integrity verification"


class PasswordHashFormatError(PortalAuthError, ValueError):
    """Raised when a stored password hash cannot be parsed."""

    code = "password_hash_format"
    default_message = "stored password hash is malformed"


class OtpError(PortalAuthError):
    """Base class for one-time passcode failures."""

    code = "otp_error"
    default_message = "verification code rejected"


class OtpNotFoundError(OtpError, LookupError):
    """Raised when no open code exists for a target and purpose."""

    code = "otp_not_found"
    default_message = "no valid verification code found, please request a new one"


class OtpExpiredError(OtpError):
    """Raised when the newest open code is past its expiry."""

    code = "otp_expired"
    default_message = "verification code expired, please request a new one"


class OtpMismatchError(OtpError):
    """Raised when a submitted code does not match."""

    code = "otp_mismatch"
    default_message = "invalid verification code"

    def __init__(self, *, remaining_attempts: int) -> None:
        super().__init__()
        self.remaining_attempts = remaining_attempts


class OtpAttemptsExceededError(OtpError):
    """Raised when a code has used up its verification attempts."""

    code = "otp_attempts_exceeded"
    default_message = "too many attempts, please request a new code"


class FeatureDisabledError(PortalAuthError):
    """Raised when an OTP channel is administratively disabled."""

    code = "feature_disabled"

    def __init__(self, *, feature: str) -> None:
        super().__init__(f"{feature} is disabled")
        self.feature = feature


class ProviderError(PortalAuthError):
    """Raised when the notification provider fails to dispatch a code."""

    code = "provider_error"
    default_message = "failed to deliver verification code"


class PermissionDeniedError(PortalAuthError, PermissionError):
    """Raised when an authenticated identity lacks every required permission."""

    code = "permission_denied"
    default_message = "insufficient permissions"

    def __init__(self, *, required: Iterable[str], granted: Iterable[str]) -> None:
        super().__init__()
        self.required = tuple(sorted(required))
        self.granted = tuple(sorted(granted))
