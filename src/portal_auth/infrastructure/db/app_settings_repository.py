"""SQLAlchemy adapter for administrative key/value settings."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.ports.app_settings_port import AppSettingsPort
from portal_auth.infrastructure.db.metadata import app_settings


class SqlAlchemyAppSettingsRepository(AppSettingsPort):
    """App settings reader backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_value(self, *, key: str) -> str | None:
        statement = sa.select(app_settings.c.value).where(app_settings.c.key == key).limit(1)

        async with self._session_factory() as session:
            result = await session.execute(statement)

        value = result.scalar_one_or_none()
        return None if value is None else str(value)
