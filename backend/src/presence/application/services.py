import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from presence.domain.entities import OnlineUser, PresenceRecord, PresenceStatus, ResourceType
from presence.domain.repository import PresenceRepository
from shared.clock import utcnow
from shared.exceptions import NotFoundError

logger = logging.getLogger(__name__)


async def upsert_presence(
    repo: PresenceRepository,
    user_id: UUID,
    resource_type: ResourceType,
    resource_id: str,
    status: PresenceStatus = PresenceStatus.VIEWING,
    cursor_position: dict[str, Any] | None = None,
    selection: dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
) -> PresenceRecord:
    """Heartbeat: create or refresh the user's single record for a resource."""
    record = PresenceRecord(
        user_id=user_id,
        resource_type=resource_type,
        resource_id=str(resource_id),
        status=status,
        last_seen=utcnow(),
        cursor_position=cursor_position,
        selection=selection,
        metadata=metadata or {},
    )
    return await repo.upsert(record)


async def list_active(
    repo: PresenceRepository,
    resource_type: ResourceType,
    resource_id: str,
    staleness_window: timedelta,
) -> list[PresenceRecord]:
    """Who is here: active records seen within the window. Stale rows are kept."""
    return await repo.list_active(resource_type, str(resource_id), utcnow() - staleness_window)


async def mark_inactive(
    repo: PresenceRepository,
    user_id: UUID,
    resource_type: ResourceType,
    resource_id: str,
) -> PresenceRecord:
    found = await repo.mark_inactive(user_id, resource_type, str(resource_id), utcnow())
    if not found:
        raise NotFoundError("Presence", f"{user_id}/{resource_type}/{resource_id}")
    return await repo.get(user_id, resource_type, str(resource_id))


async def list_online_users(
    repo: PresenceRepository, window: timedelta, limit: int
) -> list[OnlineUser]:
    """Distinct users with an active record seen inside the window, most recent first."""
    return await repo.online_users(utcnow() - window, limit)


async def count_online(repo: PresenceRepository, window: timedelta) -> int:
    return await repo.count_online(utcnow() - window)


async def mark_idle(repo: PresenceRepository, inactivity: timedelta) -> int:
    """Move editors who have gone quiet for longer than ``inactivity`` to idle."""
    count = await repo.set_status_where_stale(
        PresenceStatus.EDITING, PresenceStatus.IDLE, utcnow() - inactivity
    )
    if count:
        logger.info("Marked %d editing presence records idle", count)
    return count


async def reap(repo: PresenceRepository, older_than: timedelta) -> int:
    removed = await repo.delete_seen_before(utcnow() - older_than)
    logger.info("Reaped %d presence records not seen for %s", removed, older_than)
    return removed
