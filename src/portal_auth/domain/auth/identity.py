"""Authenticated identity derived from verified access-token claims."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from portal_auth.domain.auth.permissions import PermissionSet


@dataclass(frozen=True)
class AccessTokenClaims:
    """Claims carried by a signed access token."""

    subject: UUID
    permissions: PermissionSet
    issued_at: datetime
    expires_at: datetime
    token_id: str


@dataclass(frozen=True)
class Identity:
    """Caller identity used for authorization decisions."""

    user_id: UUID
    permissions: PermissionSet

    @classmethod
    def from_claims(cls, claims: AccessTokenClaims) -> Identity:
        return cls(user_id=claims.subject, permissions=claims.permissions)
