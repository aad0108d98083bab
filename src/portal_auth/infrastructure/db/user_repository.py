"""SQLAlchemy adapter for user lookup and password updates."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.ports.user_repository_port import UserRecord, UserRepositoryPort
from portal_auth.domain.auth.account_status import AccountStatus
from portal_auth.infrastructure.db.metadata import users
from portal_auth.infrastructure.db.session import as_utc


class SqlAlchemyUserRepository(UserRepositoryPort):
    """User repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_by_id(self, *, user_id: UUID) -> UserRecord | None:
        """Return user by id, including inactive users."""

        return await self._get_one(users.c.id == user_id)

    async def get_by_email(self, *, email: str) -> UserRecord | None:
        """Return user by normalized email, including inactive users."""

        return await self._get_one(users.c.email == email)

    async def get_by_phone(self, *, phone: str) -> UserRecord | None:
        """Return user by normalized phone, including inactive users."""

        return await self._get_one(users.c.phone == phone)

    async def update_password_hash(self, *, user_id: UUID, password_hash: str) -> bool:
        """Replace the stored password hash for one user."""

        statement = (
            sa.update(users)
            .where(users.c.id == user_id)
            .values(password_hash=password_hash, updated_at=datetime.now(tz=UTC))
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0) == 1

    async def _get_one(self, condition: sa.ColumnElement[bool]) -> UserRecord | None:
        statement = sa.select(
            users.c.id,
            users.c.email,
            users.c.phone,
            users.c.password_hash,
            users.c.status,
            users.c.created_at,
            users.c.updated_at,
        ).where(condition).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_user_record(row)


def _to_user_record(row: sa.RowMapping) -> UserRecord:
    raw_user_id = row["id"]
    user_id = raw_user_id if isinstance(raw_user_id, UUID) else UUID(str(raw_user_id))
    return UserRecord(
        user_id=user_id,
        email=cast(str, row["email"]),
        phone=cast(str | None, row["phone"]),
        password_hash=cast(str, row["password_hash"]),
        status=AccountStatus(cast(str, row["status"])),
        created_at=as_utc(cast(datetime, row["created_at"])),
        updated_at=as_utc(cast(datetime, row["updated_at"])),
    )
