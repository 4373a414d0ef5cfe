from datetime import datetime
from typing import Any
from uuid import UUID


class NullNotificationSource:
    """Stand-in until a notification system is plugged in; never has anything pending."""

    async def pending_for(self, user_id: UUID, since: datetime) -> list[dict[str, Any]]:
        return []
