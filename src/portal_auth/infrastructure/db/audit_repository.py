"""SQLAlchemy adapter for security audit event append operations."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.ports.audit_repository_port import (
    AuditEventCreateInput,
    AuditRepositoryPort,
)
from portal_auth.infrastructure.db.metadata import audit_events


class SqlAlchemyAuditRepository(AuditRepositoryPort):
    """Audit repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append_event(self, payload: AuditEventCreateInput) -> int:
        """Insert an audit event row and return its numeric id."""

        statement = sa.insert(audit_events).values(
            actor_user_id=payload.actor_user_id,
            event_type=payload.event_type.value,
            ip_address=payload.ip_address,
            user_agent=payload.user_agent,
            payload=payload.payload,
        ).returning(audit_events.c.id)

        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()

        inserted_id = result.scalar_one()
        return int(inserted_id)
