"""Periodic housekeeping for sessions and presence, run by an external scheduler."""

import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from collaboration.application.services import end_abandoned_sessions
from collaboration.infrastructure.session_repository import DbSessionRepository
from presence.application.services import count_online, mark_idle, reap
from presence.infrastructure.presence_repository import DbPresenceRepository
from shared.config import settings
from shared.infrastructure.locks import SessionLocks

logger = logging.getLogger(__name__)


@dataclass
class MaintenanceReport:
    ended_sessions: list[str]
    idled: int
    reaped: int
    online: int


async def run_maintenance(
    session_factory: async_sessionmaker[AsyncSession],
    locks: SessionLocks,
    *,
    grace_period: timedelta = timedelta(seconds=settings.SESSION_GRACE_PERIOD_SECONDS),
    idle_after: timedelta = timedelta(seconds=settings.PRESENCE_IDLE_SECONDS),
    retention: timedelta = timedelta(days=settings.PRESENCE_RETENTION_DAYS),
    online_window: timedelta = timedelta(seconds=settings.PRESENCE_STALENESS_SECONDS),
) -> MaintenanceReport:
    """End abandoned sessions, idle quiet editors and reap old presence rows."""
    async with session_factory() as db:
        ended = await end_abandoned_sessions(DbSessionRepository(db), locks, grace_period)

    async with session_factory() as db:
        presence = DbPresenceRepository(db)
        idled = await mark_idle(presence, idle_after)
        reaped = await reap(presence, retention)
        online = await count_online(presence, online_window)

    report = MaintenanceReport(
        ended_sessions=[s.session_id for s in ended],
        idled=idled,
        reaped=reaped,
        online=online,
    )
    logger.info(
        "Maintenance: %d sessions ended, %d presence records idled, %d reaped, %d users online",
        len(report.ended_sessions),
        report.idled,
        report.reaped,
        report.online,
    )
    return report
