from typing import Protocol
from uuid import UUID

from notes.domain.entities import Note


class NoteRepository(Protocol):
    async def get_by_id(self, note_id: UUID) -> Note | None: ...

    async def list_active(self) -> list[Note]: ...

    async def create(self, note: Note) -> Note: ...

    async def update(self, note: Note, expected_version: int) -> Note: ...

    async def deactivate(self, note_id: UUID) -> None: ...
