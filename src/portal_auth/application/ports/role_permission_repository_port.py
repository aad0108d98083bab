"""Port for reading role/permission associations."""

from __future__ import annotations

from typing import Protocol
from uuid import UUID


class RolePermissionRepositoryPort(Protocol):
    """Read-only view over user roles and their permission codes."""

    async def list_permission_codes_for_user(self, *, user_id: UUID) -> list[str]:
        """Return distinct permission codes reachable from the user's roles."""
