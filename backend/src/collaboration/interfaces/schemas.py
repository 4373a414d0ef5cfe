import base64
import binascii
from datetime import datetime
from uuid import UUID

from pydantic import field_validator

from collaboration.domain.entities import CollaborativeSession, UpdateFragment
from shared.schemas import CamelModel


class StartSessionRequest(CamelModel):
    note_id: UUID
    session_id: str | None = None


class ApplyUpdateRequest(CamelModel):
    update: str  # base64-encoded fragment

    @field_validator("update")
    @classmethod
    def must_be_base64(cls, value: str) -> str:
        try:
            decoded = base64.b64decode(value, validate=True)
        except binascii.Error:
            raise ValueError("update must be base64-encoded")
        if not decoded:
            raise ValueError("update must not be empty")
        return value

    def fragment(self) -> bytes:
        return base64.b64decode(self.update)


class ApplyUpdateResponse(CamelModel):
    session_id: str
    sequence: int


class SessionResponse(CamelModel):
    session_id: str
    note_id: UUID
    participants: list[UUID]
    is_active: bool
    started_at: datetime
    ended_at: datetime | None = None
    last_activity: datetime
    total_edits: int
    total_participants: int
    average_session_duration: float | None = None
    conflict_resolutions: int

    @classmethod
    def from_entity(cls, session: CollaborativeSession) -> "SessionResponse":
        return cls(
            session_id=session.session_id,
            note_id=session.note_id,
            participants=session.participants,
            is_active=session.is_active,
            started_at=session.started_at,
            ended_at=session.ended_at,
            last_activity=session.last_activity,
            total_edits=session.total_edits,
            total_participants=session.total_participants,
            average_session_duration=session.average_session_duration,
            conflict_resolutions=session.conflict_resolutions,
        )


class FragmentResponse(CamelModel):
    sequence: int
    update: str
    user_id: UUID | None = None
    created_at: datetime

    @classmethod
    def from_entity(cls, fragment: UpdateFragment) -> "FragmentResponse":
        return cls(
            sequence=fragment.seq,
            update=base64.b64encode(fragment.data).decode(),
            user_id=fragment.user_id,
            created_at=fragment.created_at,
        )


class NoteTextResponse(CamelModel):
    note_id: UUID
    text: str


class NoteStateResponse(CamelModel):
    note_id: UUID
    state: str  # base64-encoded update

    @classmethod
    def from_update(cls, note_id: UUID, update: bytes) -> "NoteStateResponse":
        return cls(note_id=note_id, state=base64.b64encode(update).decode())
