from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from realtime.domain.entities import PollResult
from shared.schemas import CamelModel


class ActivityUser(CamelModel):
    id: UUID
    name: str
    email: str


class ActivityItem(CamelModel):
    id: UUID
    type: str
    description: str
    created_at: datetime
    user: ActivityUser | None = None


class OnlineUserItem(CamelModel):
    id: UUID
    name: str
    email: str
    last_active_at: datetime


class PresencePayload(CamelModel):
    online_users: list[OnlineUserItem]
    total_online: int


class PollData(CamelModel):
    activities: list[ActivityItem]
    presence: PresencePayload
    notifications: list[dict[str, Any]]


class PollResponse(CamelModel):
    success: bool = True
    timestamp: datetime
    data: PollData

    @classmethod
    def from_result(cls, result: PollResult) -> "PollResponse":
        return cls(
            timestamp=result.timestamp,
            data=PollData(
                activities=[
                    ActivityItem(
                        id=a.id,
                        type=a.type,
                        description=a.description,
                        created_at=a.created_at,
                        user=ActivityUser(id=a.user.id, name=a.user.name, email=a.user.email)
                        if a.user
                        else None,
                    )
                    for a in result.activities
                ],
                presence=PresencePayload(
                    online_users=[
                        OnlineUserItem(
                            id=u.id, name=u.name, email=u.email, last_active_at=u.last_active_at
                        )
                        for u in result.presence.online_users
                    ],
                    total_online=result.presence.total_online,
                ),
                notifications=result.notifications,
            ),
        )


class PollErrorResponse(BaseModel):
    success: bool = False
    error: str
