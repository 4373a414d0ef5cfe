from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass
class ActivityActor:
    id: UUID
    name: str
    email: str


@dataclass
class Activity:
    type: str
    description: str
    created_at: datetime
    user: ActivityActor | None = None
    id: UUID | None = field(default=None)
