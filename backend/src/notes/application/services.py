from uuid import UUID

from notes.domain.entities import Note
from notes.domain.repository import NoteRepository
from shared.exceptions import AuthorizationError, NotFoundError


async def create_note(repo: NoteRepository, title: str, owner_id: UUID) -> Note:
    return await repo.create(Note(title=title, owner_id=owner_id))


async def get_note(repo: NoteRepository, note_id: UUID) -> Note:
    """Return an active note; soft-deleted notes are reported as missing."""
    note = await repo.get_by_id(note_id)
    if not note or not note.is_active:
        raise NotFoundError("Note", str(note_id))
    return note


async def list_notes(repo: NoteRepository) -> list[Note]:
    return await repo.list_active()


async def rename_note(
    repo: NoteRepository,
    note_id: UUID,
    expected_version: int,
    title: str,
) -> Note:
    note = await get_note(repo, note_id)
    note.title = title
    return await repo.update(note, expected_version)


async def delete_note(repo: NoteRepository, note_id: UUID, user_id: UUID) -> None:
    note = await get_note(repo, note_id)
    if note.owner_id != user_id:
        raise AuthorizationError("Only the note owner can delete it")
    await repo.deactivate(note_id)
