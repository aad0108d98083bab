"""HS256 JWT codec for short-lived access tokens."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime
from uuid import UUID

import jwt

from portal_auth.application.ports.token_codec_port import AccessTokenCodecPort
from portal_auth.config.policy import require_secret
from portal_auth.domain.auth.errors import ExpiredTokenError, InvalidTokenError
from portal_auth.domain.auth.identity import AccessTokenClaims
from portal_auth.domain.auth.permissions import PermissionSet, parse_permissions

_ALGORITHM = "HS256"
_TOKEN_TYPE = "access"
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "iss", "jti", "type"]


class JwtAccessTokenCodec(AccessTokenCodecPort):
    """Sign access tokens and verify them by signature and expiry only."""

    def __init__(self, *, secret: str, issuer: str) -> None:
        self._secret = require_secret(name="access token secret", value=secret)
        self._issuer = issuer

    def encode(
        self,
        *,
        subject: UUID,
        permissions: PermissionSet,
        issued_at: datetime,
        expires_at: datetime,
    ) -> str:
        payload = {
            "sub": str(subject),
            "iss": self._issuer,
            "iat": issued_at,
            "exp": expires_at,
            "jti": secrets.token_urlsafe(16),
            "type": _TOKEN_TYPE,
            "perms": sorted(permission.value for permission in permissions),
        }
        return jwt.encode(payload, self._secret, algorithm=_ALGORITHM)

    def decode(self, token: str) -> AccessTokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_ALGORITHM],
                issuer=self._issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as error:
            raise ExpiredTokenError() from error
        except jwt.InvalidTokenError as error:
            raise InvalidTokenError() from error

        if payload["type"] != _TOKEN_TYPE:
            raise InvalidTokenError()
        try:
            subject = UUID(str(payload["sub"]))
            permissions = parse_permissions(payload.get("perms", []))
        except (TypeError, ValueError) as error:
            raise InvalidTokenError() from error

        return AccessTokenClaims(
            subject=subject,
            permissions=permissions,
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
            token_id=str(payload["jti"]),
        )
