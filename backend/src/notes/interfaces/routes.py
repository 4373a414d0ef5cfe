from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth.domain.entities import User
from notes.application.services import (
    create_note,
    delete_note,
    get_note,
    list_notes,
    rename_note,
)
from notes.infrastructure.note_repository import DbNoteRepository
from notes.interfaces.schemas import CreateNoteRequest, NoteResponse, RenameNoteRequest
from shared.dependencies import get_current_user, get_db

router = APIRouter(prefix="/api/notes", tags=["notes"])


@router.post("/", response_model=NoteResponse, status_code=201)
async def create(
    body: CreateNoteRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = DbNoteRepository(db)
    return await create_note(repo, title=body.title, owner_id=current_user.id)


@router.get("/", response_model=list[NoteResponse])
async def list_all(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_notes(DbNoteRepository(db))


@router.get("/{note_id}", response_model=NoteResponse)
async def get_one(
    note_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_note(DbNoteRepository(db), note_id)


@router.patch("/{note_id}", response_model=NoteResponse)
async def rename(
    note_id: UUID,
    body: RenameNoteRequest,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = DbNoteRepository(db)
    return await rename_note(
        repo,
        note_id=note_id,
        expected_version=body.expected_version,
        title=body.title,
    )


@router.delete("/{note_id}", status_code=204)
async def delete(
    note_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_note(DbNoteRepository(db), note_id=note_id, user_id=current_user.id)
