from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class CreateNoteRequest(BaseModel):
    title: str


class RenameNoteRequest(BaseModel):
    title: str
    expected_version: int


class NoteResponse(BaseModel):
    id: UUID
    title: str
    owner_id: UUID
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
