"""Access token extraction and permission guard helpers for request handlers."""

from __future__ import annotations

from collections.abc import Iterable

from portal_auth.application.services.permission_gate import PermissionGate, RequestContext
from portal_auth.application.services.token_service import TokenService
from portal_auth.domain.auth.errors import InvalidTokenError, NotAuthenticatedError
from portal_auth.domain.auth.identity import Identity
from portal_auth.domain.auth.permissions import Permission

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def extract_bearer_token(authorization_header: str | None) -> str:
    """Extract token from standard `Authorization: Bearer <token>` header."""

    if authorization_header is None or not authorization_header.strip():
        raise NotAuthenticatedError("missing bearer token")

    parts = authorization_header.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise InvalidTokenError("invalid bearer token header")

    return parts[1]


def extract_access_token(
    *,
    access_cookie: str | None,
    authorization_header: str | None,
) -> str:
    """Prefer the HTTP-only access cookie, then fall back to the bearer header."""

    if access_cookie is not None and access_cookie.strip():
        return access_cookie.strip()
    return extract_bearer_token(authorization_header)


class AccessTokenGuard:
    """Resolve the caller from an access token and enforce route permissions."""

    def __init__(self, *, tokens: TokenService, permission_gate: PermissionGate) -> None:
        self._tokens = tokens
        self._permission_gate = permission_gate

    def authenticate(
        self,
        *,
        access_cookie: str | None = None,
        authorization_header: str | None = None,
    ) -> Identity:
        """Verify the presented access token and return the caller identity."""

        token = extract_access_token(
            access_cookie=access_cookie,
            authorization_header=authorization_header,
        )
        return Identity.from_claims(self._tokens.verify_access_token(token))

    async def require_permissions(
        self,
        required: Iterable[Permission | str],
        *,
        access_cookie: str | None = None,
        authorization_header: str | None = None,
        request: RequestContext | None = None,
    ) -> Identity:
        """Authenticate, then require any one of the given permissions."""

        identity = self.authenticate(
            access_cookie=access_cookie,
            authorization_header=authorization_header,
        )
        return await self._permission_gate.require(identity, required, request=request)
