"""Two-token session issuance, rotation and revocation.

Access tokens are signed claim bundles verified by signature and expiry only.
Refresh tokens are opaque random values; only their keyed digest is stored.
Each refresh revokes the presented row with a conditional update and inserts
its successor in the same transaction, so two concurrent refreshes of one
token cannot both succeed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from portal_auth.application.ports.refresh_token_repository_port import (
    RefreshTokenCreateInput,
    RefreshTokenRepositoryPort,
)
from portal_auth.application.ports.role_permission_repository_port import (
    RolePermissionRepositoryPort,
)
from portal_auth.application.ports.token_codec_port import AccessTokenCodecPort, OpaqueTokenPort
from portal_auth.config.policy import AuthPolicy
from portal_auth.domain.auth.errors import ExpiredTokenError, InvalidTokenError, RevokedTokenError
from portal_auth.domain.auth.identity import AccessTokenClaims
from portal_auth.domain.auth.permissions import permissions_from_storage

NowCallable = Callable[[], datetime]
logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class TokenPair:
    """Tokens handed to the caller for cookie storage."""

    user_id: UUID
    access_token: str
    access_expires_at: datetime
    refresh_token: str
    refresh_expires_at: datetime


class TokenService:
    """Issue, verify, rotate and revoke session tokens."""

    def __init__(
        self,
        *,
        refresh_tokens: RefreshTokenRepositoryPort,
        role_permissions: RolePermissionRepositoryPort,
        access_codec: AccessTokenCodecPort,
        opaque_tokens: OpaqueTokenPort,
        policy: AuthPolicy,
        now: NowCallable = _utc_now,
    ) -> None:
        self._refresh_tokens = refresh_tokens
        self._role_permissions = role_permissions
        self._access_codec = access_codec
        self._opaque_tokens = opaque_tokens
        self._policy = policy
        self._now = now

    async def issue(self, *, user_id: UUID) -> TokenPair:
        """Issue a fresh access token and a new refresh token row."""

        pair, row = await self._mint(user_id=user_id)
        await self._refresh_tokens.create_token(row)
        logger.info(
            "session_tokens_issued user_id=%s refresh_expires_at=%s",
            user_id,
            pair.refresh_expires_at.isoformat(),
        )
        return pair

    async def refresh(self, raw_refresh_token: str) -> TokenPair:
        """Rotate a refresh token: revoke the presented row and store its successor.

        Both writes commit together, so a failed rotation leaves the presented
        token usable and a lost race leaves no extra row behind.
        """

        if not raw_refresh_token:
            raise InvalidTokenError()

        token_hash = self._opaque_tokens.hash_token(raw_refresh_token)
        record = await self._refresh_tokens.get_by_hash(token_hash=token_hash)
        if record is None:
            raise InvalidTokenError()
        if record.revoked_at is not None:
            logger.warning(
                "refresh_token_reuse_rejected user_id=%s row_id=%s",
                record.user_id,
                record.id,
            )
            raise RevokedTokenError()
        if record.expires_at <= self._now():
            raise ExpiredTokenError()

        pair, row = await self._mint(user_id=record.user_id)
        rotated = await self._refresh_tokens.rotate(token_hash=token_hash, replacement=row)
        if rotated is None:
            logger.warning(
                "refresh_token_rotation_lost_race user_id=%s row_id=%s",
                record.user_id,
                record.id,
            )
            raise RevokedTokenError()

        logger.info(
            "refresh_token_rotated user_id=%s old_row_id=%s new_row_id=%s",
            record.user_id,
            record.id,
            rotated.id,
        )
        return pair

    async def _mint(self, *, user_id: UUID) -> tuple[TokenPair, RefreshTokenCreateInput]:
        codes = await self._role_permissions.list_permission_codes_for_user(user_id=user_id)
        permissions = permissions_from_storage(codes)

        issued_at = self._now()
        access_expires_at = issued_at + self._policy.access_token_ttl
        access_token = self._access_codec.encode(
            subject=user_id,
            permissions=permissions,
            issued_at=issued_at,
            expires_at=access_expires_at,
        )

        refresh_token = self._opaque_tokens.issue_token()
        refresh_expires_at = issued_at + self._policy.refresh_token_ttl
        pair = TokenPair(
            user_id=user_id,
            access_token=access_token,
            access_expires_at=access_expires_at,
            refresh_token=refresh_token,
            refresh_expires_at=refresh_expires_at,
        )
        row = RefreshTokenCreateInput(
            user_id=user_id,
            token_hash=self._opaque_tokens.hash_token(refresh_token),
            expires_at=refresh_expires_at,
        )
        return pair, row

    async def revoke(self, raw_refresh_token: str) -> bool:
        """Revoke one refresh token; return whether an active row was revoked."""

        if not raw_refresh_token:
            return False
        token_hash = self._opaque_tokens.hash_token(raw_refresh_token)
        return await self._refresh_tokens.revoke_by_hash(token_hash=token_hash)

    async def revoke_all_for_user(self, *, user_id: UUID) -> int:
        """Revoke every unrevoked refresh token belonging to one user."""

        revoked = await self._refresh_tokens.revoke_active_tokens_for_user(user_id=user_id)
        logger.info("refresh_tokens_revoked_for_user user_id=%s count=%s", user_id, revoked)
        return revoked

    def verify_access_token(self, token: str) -> AccessTokenClaims:
        """Verify an access token by signature and expiry, without a store lookup."""

        if not token:
            raise InvalidTokenError()
        return self._access_codec.decode(token)
