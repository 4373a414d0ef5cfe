from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from notes.domain.entities import Note
from notes.infrastructure.models import NoteModel
from shared.clock import utcnow
from shared.exceptions import ConflictError


class DbNoteRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, note_id: UUID) -> Note | None:
        result = await self.session.execute(
            select(NoteModel)
            .where(NoteModel.id == note_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def list_active(self) -> list[Note]:
        result = await self.session.execute(
            select(NoteModel)
            .where(NoteModel.is_active.is_(True))
            .order_by(NoteModel.created_at.desc())
        )
        return [_to_entity(m) for m in result.scalars().all()]

    async def create(self, note: Note) -> Note:
        model = NoteModel(title=note.title, owner_id=note.owner_id)
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)
        return _to_entity(model)

    async def update(self, note: Note, expected_version: int) -> Note:
        result = await self.session.execute(
            update(NoteModel)
            .where(
                NoteModel.id == note.id,
                NoteModel.version == expected_version,
            )
            .values(
                title=note.title,
                version=expected_version + 1,
                updated_at=utcnow(),
            )
        )
        if result.rowcount == 0:
            await self.session.rollback()
            raise ConflictError("Note was modified by another user")

        await self.session.commit()

        refreshed = await self.session.execute(
            select(NoteModel)
            .where(NoteModel.id == note.id)
            .execution_options(populate_existing=True)
        )
        return _to_entity(refreshed.scalar_one())

    async def deactivate(self, note_id: UUID) -> None:
        await self.session.execute(
            update(NoteModel)
            .where(NoteModel.id == note_id)
            .values(is_active=False, updated_at=utcnow())
        )
        await self.session.commit()


def _to_entity(model: NoteModel) -> Note:
    return Note(
        id=model.id,
        title=model.title,
        owner_id=model.owner_id,
        is_active=model.is_active,
        version=model.version,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )
