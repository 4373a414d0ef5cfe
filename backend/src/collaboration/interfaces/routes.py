from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth.domain.entities import User
from collaboration.application.services import (
    end_session,
    get_session,
    join_session,
    leave_session,
    load_note_state,
    load_note_text,
    read_log,
    record_conflict,
    record_edit,
    start_session,
)
from collaboration.infrastructure.session_repository import DbSessionRepository
from collaboration.infrastructure.update_log_repository import DbUpdateLogRepository
from collaboration.interfaces.schemas import (
    ApplyUpdateRequest,
    ApplyUpdateResponse,
    FragmentResponse,
    NoteStateResponse,
    NoteTextResponse,
    SessionResponse,
    StartSessionRequest,
)
from notes.application.services import get_note
from notes.infrastructure.note_repository import DbNoteRepository
from presence.application.services import mark_inactive, upsert_presence
from presence.domain.entities import PresenceStatus, ResourceType
from presence.infrastructure.presence_repository import DbPresenceRepository
from shared.dependencies import get_current_user, get_db, get_session_locks
from shared.infrastructure.locks import SessionLocks

router = APIRouter(prefix="/api/collaboration", tags=["collaboration"])


@router.post("/sessions/start", response_model=SessionResponse)
async def start(
    body: StartSessionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    locks: SessionLocks = Depends(get_session_locks),
):
    session = await start_session(
        DbSessionRepository(db),
        DbNoteRepository(db),
        locks,
        note_id=body.note_id,
        user_id=current_user.id,
        session_id=body.session_id,
    )
    await upsert_presence(
        DbPresenceRepository(db),
        user_id=current_user.id,
        resource_type=ResourceType.NOTE,
        resource_id=str(body.note_id),
        status=PresenceStatus.VIEWING,
        metadata={"sessionId": session.session_id},
    )
    return SessionResponse.from_entity(session)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_one(
    session_id: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return SessionResponse.from_entity(await get_session(DbSessionRepository(db), session_id))


@router.post("/sessions/{session_id}/join", response_model=SessionResponse)
async def join(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    locks: SessionLocks = Depends(get_session_locks),
):
    session = await join_session(DbSessionRepository(db), locks, session_id, current_user.id)
    return SessionResponse.from_entity(session)


@router.post("/sessions/{session_id}/leave", response_model=SessionResponse)
async def leave(
    session_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    locks: SessionLocks = Depends(get_session_locks),
):
    session = await leave_session(DbSessionRepository(db), locks, session_id, current_user.id)
    presence_repo = DbPresenceRepository(db)
    note_key = (current_user.id, ResourceType.NOTE, str(session.note_id))
    if await presence_repo.get(*note_key):
        await mark_inactive(presence_repo, *note_key)
    return SessionResponse.from_entity(session)


@router.post("/sessions/{session_id}/end", response_model=SessionResponse)
async def end(
    session_id: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    locks: SessionLocks = Depends(get_session_locks),
):
    return SessionResponse.from_entity(await end_session(DbSessionRepository(db), locks, session_id))


@router.post(
    "/sessions/{session_id}/updates",
    response_model=ApplyUpdateResponse,
    status_code=201,
)
async def apply_update(
    session_id: str,
    body: ApplyUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    locks: SessionLocks = Depends(get_session_locks),
):
    repo = DbSessionRepository(db)
    stored = await record_edit(
        repo,
        DbUpdateLogRepository(db),
        locks,
        session_id,
        body.fragment(),
        user_id=current_user.id,
    )
    session = await get_session(repo, session_id)
    await upsert_presence(
        DbPresenceRepository(db),
        user_id=current_user.id,
        resource_type=ResourceType.NOTE,
        resource_id=str(session.note_id),
        status=PresenceStatus.EDITING,
    )
    return ApplyUpdateResponse(session_id=session_id, sequence=stored.seq)


@router.get(
    "/sessions/{session_id}/updates",
    response_model=list[FragmentResponse],
)
async def list_updates(
    session_id: str,
    after: int = Query(default=0, ge=0),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    fragments = await read_log(
        DbSessionRepository(db), DbUpdateLogRepository(db), session_id, after_seq=after
    )
    return [FragmentResponse.from_entity(f) for f in fragments]


@router.post("/sessions/{session_id}/conflicts", response_model=SessionResponse)
async def conflict_resolved(
    session_id: str,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    locks: SessionLocks = Depends(get_session_locks),
):
    session = await record_conflict(DbSessionRepository(db), locks, session_id)
    return SessionResponse.from_entity(session)


@router.get("/notes/{note_id}/text", response_model=NoteTextResponse)
async def note_text(
    note_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_note(DbNoteRepository(db), note_id)
    text = await load_note_text(DbUpdateLogRepository(db), note_id)
    return NoteTextResponse(note_id=note_id, text=text)


@router.get("/notes/{note_id}/state", response_model=NoteStateResponse)
async def note_state(
    note_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await get_note(DbNoteRepository(db), note_id)
    state = await load_note_state(DbUpdateLogRepository(db), note_id)
    return NoteStateResponse.from_update(note_id, state)
