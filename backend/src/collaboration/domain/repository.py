from datetime import datetime
from typing import Protocol
from uuid import UUID

from collaboration.domain.entities import CollaborativeSession, UpdateFragment


class SessionRepository(Protocol):
    async def get_by_session_id(self, session_id: str) -> CollaborativeSession | None: ...

    async def list_active_for_note(self, note_id: UUID) -> list[CollaborativeSession]: ...

    async def create(
        self, note_id: UUID, session_id: str, user_id: UUID, at: datetime
    ) -> CollaborativeSession: ...

    async def add_participant(self, session_pk: UUID, user_id: UUID, at: datetime) -> bool: ...

    async def remove_participant(self, session_pk: UUID, user_id: UUID, at: datetime) -> None: ...

    async def increment_conflicts(self, session_pk: UUID, at: datetime) -> None: ...

    async def ended_duration_stats(self, note_id: UUID) -> tuple[int, float | None]: ...

    async def end(self, session_pk: UUID, ended_at: datetime, average_duration: float) -> None: ...

    async def list_abandoned(self, idle_before: datetime) -> list[CollaborativeSession]: ...


class UpdateLog(Protocol):
    async def append(
        self,
        session_pk: UUID,
        data: bytes,
        user_id: UUID | None = None,
        at: datetime | None = None,
    ) -> UpdateFragment: ...

    async def read_all(self, session_pk: UUID) -> list[UpdateFragment]: ...

    async def read_since(self, session_pk: UUID, after_seq: int) -> list[UpdateFragment]: ...

    async def read_for_note(self, note_id: UUID) -> list[UpdateFragment]: ...
