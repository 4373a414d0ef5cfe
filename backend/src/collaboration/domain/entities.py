from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID


@dataclass
class CollaborativeSession:
    note_id: UUID
    session_id: str
    participants: list[UUID] = field(default_factory=list)
    is_active: bool = True
    started_at: datetime | None = field(default=None)
    ended_at: datetime | None = field(default=None)
    last_activity: datetime | None = field(default=None)
    total_edits: int = 0
    total_participants: int = 0
    average_session_duration: float | None = None  # seconds
    conflict_resolutions: int = 0
    id: UUID | None = field(default=None)

    def duration_seconds(self, now: datetime) -> float:
        end = self.ended_at or now
        return (end - self.started_at).total_seconds()


@dataclass
class UpdateFragment:
    session_pk: UUID
    seq: int
    data: bytes
    user_id: UUID | None = None
    id: int | None = field(default=None)
    created_at: datetime | None = field(default=None)
