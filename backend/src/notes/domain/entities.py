from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass
class Note:
    title: str
    owner_id: UUID
    is_active: bool = True
    version: int = 1
    id: UUID | None = field(default=None)
    created_at: datetime | None = field(default=None)
    updated_at: datetime | None = field(default=None)
