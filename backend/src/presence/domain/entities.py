from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any
from uuid import UUID


class ResourceType(StrEnum):
    NOTE = "note"
    LEAD = "lead"
    ACTIVITY = "activity"


class PresenceStatus(StrEnum):
    VIEWING = "viewing"
    EDITING = "editing"
    IDLE = "idle"


@dataclass
class PresenceRecord:
    user_id: UUID
    resource_type: ResourceType
    resource_id: str
    status: PresenceStatus = PresenceStatus.VIEWING
    is_active: bool = True
    last_seen: datetime | None = field(default=None)
    cursor_position: dict[str, Any] | None = None
    selection: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    id: UUID | None = field(default=None)


@dataclass
class OnlineUser:
    id: UUID
    name: str
    email: str
    last_active_at: datetime
