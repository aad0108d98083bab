"""SQLAlchemy adapter for refresh token persistence."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.ports.refresh_token_repository_port import (
    RefreshTokenCreateInput,
    RefreshTokenRecord,
    RefreshTokenRepositoryPort,
)
from portal_auth.infrastructure.db.metadata import refresh_tokens
from portal_auth.infrastructure.db.session import as_utc


class SqlAlchemyRefreshTokenRepository(RefreshTokenRepositoryPort):
    """Refresh token repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_token(self, payload: RefreshTokenCreateInput) -> RefreshTokenRecord:
        """Persist a token hash row and return the inserted token record."""

        statement = sa.insert(refresh_tokens).values(
            user_id=payload.user_id,
            token_hash=payload.token_hash,
            issued_at=datetime.now(tz=UTC),
            expires_at=payload.expires_at,
        ).returning(*refresh_tokens.c)

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        row = result.mappings().one()
        return _to_refresh_token_record(row)

    async def get_by_hash(self, *, token_hash: str) -> RefreshTokenRecord | None:
        """Return token by hash including revoked and expired rows."""

        statement = sa.select(*refresh_tokens.c).where(
            refresh_tokens.c.token_hash == token_hash,
        ).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_refresh_token_record(row)

    async def get_active_by_hash(self, *, token_hash: str) -> RefreshTokenRecord | None:
        """Return active token by hash when not revoked and not expired."""

        now = datetime.now(tz=UTC)
        statement = sa.select(*refresh_tokens.c).where(
            refresh_tokens.c.token_hash == token_hash,
            refresh_tokens.c.revoked_at.is_(None),
            refresh_tokens.c.expires_at > now,
        ).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_refresh_token_record(row)

    async def revoke_by_hash(self, *, token_hash: str) -> bool:
        """Revoke one token only while it is still unrevoked."""

        statement = (
            sa.update(refresh_tokens)
            .where(
                refresh_tokens.c.token_hash == token_hash,
                refresh_tokens.c.revoked_at.is_(None),
            )
            .values(revoked_at=datetime.now(tz=UTC))
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0) == 1

    async def rotate(
        self,
        *,
        token_hash: str,
        replacement: RefreshTokenCreateInput,
    ) -> RefreshTokenRecord | None:
        """Revoke the presented row and insert its successor atomically."""

        now = datetime.now(tz=UTC)
        revoke = (
            sa.update(refresh_tokens)
            .where(
                refresh_tokens.c.token_hash == token_hash,
                refresh_tokens.c.revoked_at.is_(None),
            )
            .values(revoked_at=now)
        )
        insert = sa.insert(refresh_tokens).values(
            user_id=replacement.user_id,
            token_hash=replacement.token_hash,
            issued_at=now,
            expires_at=replacement.expires_at,
        ).returning(*refresh_tokens.c)

        async with self._session_factory() as session:
            async with session.begin():
                revoked = cast(CursorResult[Any], await session.execute(revoke))
                if int(revoked.rowcount or 0) != 1:
                    return None
                result = await session.execute(insert)
                row = result.mappings().one()

        return _to_refresh_token_record(row)

    async def revoke_active_tokens_for_user(self, *, user_id: UUID) -> int:
        """Revoke all currently non-revoked tokens for one user."""

        statement = (
            sa.update(refresh_tokens)
            .where(
                refresh_tokens.c.user_id == user_id,
                refresh_tokens.c.revoked_at.is_(None),
            )
            .values(revoked_at=datetime.now(tz=UTC))
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0)

    async def delete_stale(self, *, now: datetime) -> int:
        """Delete rows that are revoked or past expiry."""

        statement = sa.delete(refresh_tokens).where(
            sa.or_(
                refresh_tokens.c.revoked_at.is_not(None),
                refresh_tokens.c.expires_at <= now,
            )
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0)


def _to_refresh_token_record(row: sa.RowMapping) -> RefreshTokenRecord:
    raw_user_id = row["user_id"]
    user_id = raw_user_id if isinstance(raw_user_id, UUID) else UUID(str(raw_user_id))
    revoked_at = cast(datetime | None, row["revoked_at"])
    return RefreshTokenRecord(
        id=int(row["id"]),
        user_id=user_id,
        token_hash=cast(str, row["token_hash"]),
        issued_at=as_utc(cast(datetime, row["issued_at"])),
        expires_at=as_utc(cast(datetime, row["expires_at"])),
        revoked_at=as_utc(revoked_at) if revoked_at is not None else None,
    )
