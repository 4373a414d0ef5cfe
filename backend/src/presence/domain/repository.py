from datetime import datetime
from typing import Protocol
from uuid import UUID

from presence.domain.entities import OnlineUser, PresenceRecord, PresenceStatus, ResourceType


class PresenceRepository(Protocol):
    async def upsert(self, record: PresenceRecord) -> PresenceRecord: ...

    async def get(
        self, user_id: UUID, resource_type: ResourceType, resource_id: str
    ) -> PresenceRecord | None: ...

    async def list_active(
        self, resource_type: ResourceType, resource_id: str, seen_since: datetime
    ) -> list[PresenceRecord]: ...

    async def mark_inactive(
        self, user_id: UUID, resource_type: ResourceType, resource_id: str, at: datetime
    ) -> bool: ...

    async def set_status_where_stale(
        self, from_status: PresenceStatus, to_status: PresenceStatus, seen_before: datetime
    ) -> int: ...

    async def online_users(self, seen_since: datetime, limit: int) -> list[OnlineUser]: ...

    async def count_online(self, seen_since: datetime) -> int: ...

    async def delete_seen_before(self, cutoff: datetime) -> int: ...
