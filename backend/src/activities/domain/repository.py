from datetime import datetime
from typing import Protocol
from uuid import UUID

from activities.domain.entities import Activity


class ActivityRepository(Protocol):
    async def list_created_between(
        self, after: datetime, until: datetime, limit: int
    ) -> list[Activity]: ...

    async def create(
        self,
        type: str,
        description: str,
        user_id: UUID | None = None,
        created_at: datetime | None = None,
    ) -> Activity: ...
