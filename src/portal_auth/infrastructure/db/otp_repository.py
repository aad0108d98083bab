"""SQLAlchemy adapter for one-time passcode persistence."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, cast
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.ports.otp_repository_port import (
    OtpCreateInput,
    OtpRecord,
    OtpRepositoryPort,
)
from portal_auth.domain.auth.otp import OtpChannel, OtpPurpose
from portal_auth.infrastructure.db.metadata import otp_verifications
from portal_auth.infrastructure.db.session import as_utc


class SqlAlchemyOtpRepository(OtpRepositoryPort):
    """OTP repository backed by SQLAlchemy async sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_superseding(self, payload: OtpCreateInput) -> OtpRecord:
        """Replace any open code for the target and purpose in one transaction."""

        supersede = sa.delete(otp_verifications).where(
            otp_verifications.c.target == payload.target,
            otp_verifications.c.purpose == payload.purpose.value,
            otp_verifications.c.verified_at.is_(None),
        )
        insert = sa.insert(otp_verifications).values(
            target=payload.target,
            channel=payload.channel.value,
            purpose=payload.purpose.value,
            user_id=payload.user_id,
            code_hash=payload.code_hash,
            attempts=0,
            created_at=datetime.now(tz=UTC),
            expires_at=payload.expires_at,
        ).returning(*otp_verifications.c)

        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(supersede)
                result = await session.execute(insert)
                row = result.mappings().one()

        return _to_otp_record(row)

    async def find_latest_unverified(
        self,
        *,
        target: str,
        purpose: OtpPurpose,
    ) -> OtpRecord | None:
        """Return the newest unverified record for one target and purpose."""

        statement = (
            sa.select(*otp_verifications.c)
            .where(
                otp_verifications.c.target == target,
                otp_verifications.c.purpose == purpose.value,
                otp_verifications.c.verified_at.is_(None),
            )
            .order_by(otp_verifications.c.created_at.desc(), otp_verifications.c.id.desc())
            .limit(1)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)

        row = result.mappings().first()
        if row is None:
            return None
        return _to_otp_record(row)

    async def record_attempt(
        self,
        *,
        otp_id: int,
        matched: bool,
        max_attempts: int,
        now: datetime,
    ) -> OtpRecord | None:
        """Increment attempts and set verified_at in one conditional update."""

        statement = (
            sa.update(otp_verifications)
            .where(
                otp_verifications.c.id == otp_id,
                otp_verifications.c.verified_at.is_(None),
                otp_verifications.c.expires_at > now,
                otp_verifications.c.attempts < max_attempts,
            )
            .values(
                attempts=otp_verifications.c.attempts + 1,
                verified_at=now if matched else None,
            )
            .returning(*otp_verifications.c)
        )

        async with self._session_factory() as session:
            result = await session.execute(statement)
            row = result.mappings().first()
            await session.commit()

        if row is None:
            return None
        return _to_otp_record(row)

    async def delete_expired(self, *, now: datetime) -> int:
        """Delete codes past expiry or already verified."""

        statement = sa.delete(otp_verifications).where(
            sa.or_(
                otp_verifications.c.expires_at < now,
                otp_verifications.c.verified_at.is_not(None),
            )
        )

        async with self._session_factory() as session:
            result = cast(CursorResult[Any], await session.execute(statement))
            await session.commit()

        return int(result.rowcount or 0)


def _to_otp_record(row: sa.RowMapping) -> OtpRecord:
    raw_user_id = row["user_id"]
    user_id: UUID | None
    if raw_user_id is None or isinstance(raw_user_id, UUID):
        user_id = raw_user_id
    else:
        user_id = UUID(str(raw_user_id))
    verified_at = cast(datetime | None, row["verified_at"])
    return OtpRecord(
        id=int(row["id"]),
        target=cast(str, row["target"]),
        channel=OtpChannel(cast(str, row["channel"])),
        purpose=OtpPurpose(cast(str, row["purpose"])),
        user_id=user_id,
        code_hash=cast(str, row["code_hash"]),
        attempts=int(row["attempts"]),
        created_at=as_utc(cast(datetime, row["created_at"])),
        expires_at=as_utc(cast(datetime, row["expires_at"])),
        verified_at=as_utc(verified_at) if verified_at is not None else None,
    )
