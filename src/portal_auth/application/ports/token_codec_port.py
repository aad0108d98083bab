"""Ports for access-token signing and opaque refresh-token generation."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from portal_auth.domain.auth.identity import AccessTokenClaims
from portal_auth.domain.auth.permissions import PermissionSet


class AccessTokenCodecPort(Protocol):
    """Sign and verify self-contained access tokens."""

    def encode(
        self,
        *,
        subject: UUID,
        permissions: PermissionSet,
        issued_at: datetime,
        expires_at: datetime,
    ) -> str:
        """Return a signed token for the given claims."""

    def decode(self, token: str) -> AccessTokenClaims:
        """Verify signature and expiry and return the claims."""


class OpaqueTokenPort(Protocol):
    """Generate high-entropy opaque tokens and their storage digests."""

    def issue_token(self) -> str:
        """Return a new random token value."""

    def hash_token(self, token: str) -> str:
        """Return the one-way digest persisted for a token."""
