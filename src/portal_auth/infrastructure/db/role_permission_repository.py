"""SQLAlchemy adapter resolving permission codes through role membership."""

from __future__ import annotations

from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.ports.role_permission_repository_port import (
    RolePermissionRepositoryPort,
)
from portal_auth.infrastructure.db.metadata import permissions, role_permissions, user_roles


class SqlAlchemyRolePermissionRepository(RolePermissionRepositoryPort):
    """Role/permission association reader backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_permission_codes_for_user(self, *, user_id: UUID) -> list[str]:
        """Return distinct permission codes granted by any of the user's roles."""

        statement = (
            sa.select(permissions.c.code)
            .distinct()
            .select_from(
                user_roles.join(
                    role_permissions,
                    role_permissions.c.role_id == user_roles.c.role_id,
                ).join(permissions, permissions.c.id == role_permissions.c.permission_id)
            )
            .where(user_roles.c.user_id == user_id)
            .order_by(permissions.c.code)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        return [str(code) for code in result.scalars().all()]
