from datetime import datetime
from typing import Any, Protocol
from uuid import UUID


class NotificationSource(Protocol):
    async def pending_for(self, user_id: UUID, since: datetime) -> list[dict[str, Any]]: ...
