from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from portal_auth.application.ports.audit_repository_port import AuditEventCreateInput
from portal_auth.application.ports.refresh_token_repository_port import (
    RefreshTokenCreateInput,
    RefreshTokenRecord,
)
from portal_auth.application.services.permission_gate import PermissionGate, RequestContext
from portal_auth.application.services.token_service import TokenService
from portal_auth.config.policy import AuthPolicy
from portal_auth.domain.auth.errors import (
    InvalidTokenError,
    NotAuthenticatedError,
    PermissionDeniedError,
)
from portal_auth.domain.auth.permissions import Permission
from portal_auth.infrastructure.http.auth_guard import (
    AccessTokenGuard,
    extract_access_token,
    extract_bearer_token,
)
from portal_auth.infrastructure.security.access_token_codec import JwtAccessTokenCodec
from portal_auth.infrastructure.security.token_service import OpaqueTokenService

_ACCESS_SECRET = "access-token-secret-with-at-least-32-chars"
_REFRESH_SECRET = "refresh-token-secret-with-at-least-32-chars"


class FakeRefreshTokenRepository:
    async def create_token(self, payload: RefreshTokenCreateInput) -> RefreshTokenRecord:
        return RefreshTokenRecord(
            id=1,
            user_id=payload.user_id,
            token_hash=payload.token_hash,
            issued_at=datetime.now(tz=UTC),
            expires_at=payload.expires_at,
            revoked_at=None,
        )


class FakeRolePermissionRepository:
    def __init__(self, codes: list[str]) -> None:
        self.codes = codes

    async def list_permission_codes_for_user(self, *, user_id: UUID) -> list[str]:
        _ = user_id
        return list(self.codes)


class FakeAuditRepository:
    def __init__(self) -> None:
        self.events: list[AuditEventCreateInput] = []

    async def append_event(self, payload: AuditEventCreateInput) -> int:
        self.events.append(payload)
        return len(self.events)


def _guard(codes: list[str]) -> tuple[AccessTokenGuard, TokenService, FakeAuditRepository]:
    policy = AuthPolicy(access_token_secret=_ACCESS_SECRET, refresh_token_secret=_REFRESH_SECRET)
    role_permissions = FakeRolePermissionRepository(codes)
    audit = FakeAuditRepository()
    tokens = TokenService(
        refresh_tokens=FakeRefreshTokenRepository(),  # type: ignore[arg-type]
        role_permissions=role_permissions,
        access_codec=JwtAccessTokenCodec(secret=_ACCESS_SECRET, issuer=policy.issuer),
        opaque_tokens=OpaqueTokenService(secret=_REFRESH_SECRET),
        policy=policy,
    )
    gate = PermissionGate(role_permissions=role_permissions, audit=audit)
    return AccessTokenGuard(tokens=tokens, permission_gate=gate), tokens, audit


def test_extract_bearer_token_accepts_standard_header() -> None:
    assert extract_bearer_token("Bearer abc.def") == "abc.def"
    assert extract_bearer_token("  bearer   abc  ") == "abc"


def test_extract_bearer_token_requires_header() -> None:
    with pytest.raises(NotAuthenticatedError):
        extract_bearer_token(None)
    with pytest.raises(NotAuthenticatedError):
        extract_bearer_token("   ")


@pytest.mark.parametrize("header", ["Basic abc", "Bearer", "Bearer a b", "token"])
def test_extract_bearer_token_rejects_malformed_header(header: str) -> None:
    with pytest.raises(InvalidTokenError):
        extract_bearer_token(header)


def test_access_cookie_takes_precedence_over_header() -> None:
    assert (
        extract_access_token(access_cookie="cookie-token", authorization_header="Bearer other")
        == "cookie-token"
    )
    assert extract_access_token(access_cookie="  ", authorization_header="Bearer other") == "other"


@pytest.mark.asyncio
async def test_authenticate_resolves_identity_from_access_token() -> None:
    guard, tokens, _ = _guard(["view_dashboard"])
    user_id = uuid4()
    pair = await tokens.issue(user_id=user_id)

    identity = guard.authenticate(access_cookie=pair.access_token)

    assert identity.user_id == user_id
    assert identity.permissions == {Permission.VIEW_DASHBOARD}


@pytest.mark.asyncio
async def test_require_permissions_allows_and_denies_by_token_claims() -> None:
    guard, tokens, audit = _guard(["manage_users"])
    pair = await tokens.issue(user_id=uuid4())
    header = f"Bearer {pair.access_token}"

    identity = await guard.require_permissions(
        [Permission.MANAGE_USERS],
        authorization_header=header,
    )
    assert Permission.MANAGE_USERS in identity.permissions

    with pytest.raises(PermissionDeniedError):
        await guard.require_permissions(
            ["view_dashboard"],
            authorization_header=header,
            request=RequestContext(method="GET", path="/dashboard"),
        )
    assert len(audit.events) == 1
    assert audit.events[0].payload["path"] == "/dashboard"


def test_authenticate_rejects_tampered_token() -> None:
    guard, _, _ = _guard([])

    with pytest.raises(InvalidTokenError):
        guard.authenticate(authorization_header="Bearer not-a-token")


def test_authenticate_without_any_token_is_unauthenticated() -> None:
    guard, _, _ = _guard([])

    with pytest.raises(NotAuthenticatedError):
        guard.authenticate()

