from datetime import datetime
from typing import Any
from uuid import UUID

from presence.domain.entities import PresenceStatus, ResourceType
from shared.schemas import CamelModel


class PresenceHeartbeatRequest(CamelModel):
    status: PresenceStatus = PresenceStatus.VIEWING
    cursor_position: dict[str, Any] | None = None
    selection: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None


class PresenceResponse(CamelModel):
    user_id: UUID
    resource_type: ResourceType
    resource_id: str
    status: PresenceStatus
    is_active: bool
    last_seen: datetime
    cursor_position: dict[str, Any] | None = None
    selection: dict[str, Any] | None = None
    metadata: dict[str, Any] = {}
