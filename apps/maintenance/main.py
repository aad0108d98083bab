"""maintenance entrypoint: periodic credential cleanup sweep."""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal_auth.application.services.maintenance_service import CredentialMaintenanceService
from portal_auth.config.settings import Settings, load_settings
from portal_auth.infrastructure.db.otp_repository import SqlAlchemyOtpRepository
from portal_auth.infrastructure.db.refresh_token_repository import (
    SqlAlchemyRefreshTokenRepository,
)
from portal_auth.infrastructure.db.session import create_session_factory
from portal_auth.infrastructure.logging import configure_logging

logger = logging.getLogger(__name__)


def build_maintenance_service(
    *,
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> CredentialMaintenanceService:
    """Build the sweep service with SQLAlchemy-backed repositories."""

    return CredentialMaintenanceService(
        otps=SqlAlchemyOtpRepository(session_factory),
        refresh_tokens=SqlAlchemyRefreshTokenRepository(session_factory),
        interval_seconds=settings.maintenance_sweep_interval_seconds,
    )


async def _run_maintenance() -> None:
    settings = load_settings()
    configure_logging(level=settings.log_level)
    logger.info(
        "maintenance_starting interval_seconds=%s",
        settings.maintenance_sweep_interval_seconds,
    )

    session_factory = create_session_factory(settings.database_url)
    service = build_maintenance_service(settings=settings, session_factory=session_factory)
    stop_event = asyncio.Event()

    await service.run_until_stopped(stop_event)


def main() -> None:
    """Run the credential cleanup sweep until the process is stopped."""

    asyncio.run(_run_maintenance())


if __name__ == "__main__":
    main()
