from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from collaboration.domain.entities import UpdateFragment
from collaboration.infrastructure.models import CollaborativeSessionModel, UpdateFragmentModel
from shared.clock import utcnow


class DbUpdateLogRepository:
    """Append-only store of update fragments, one ordered log per session.

    Callers must hold the session's lock around ``append`` so that sequence
    numbers follow causal append order; the unique (session_pk, seq)
    constraint rejects any interleaved writer that slipped past it.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        session_pk: UUID,
        data: bytes,
        user_id: UUID | None = None,
        at: datetime | None = None,
    ) -> UpdateFragment:
        """Append a fragment and count it as an edit of its session.

        The fragment row and the session's ``total_edits`` and
        ``last_activity`` commit in one transaction; on any failure neither
        is stored.
        """
        try:
            seq = await self._next_seq(session_pk)
            model = UpdateFragmentModel(
                session_pk=session_pk,
                seq=seq,
                fragment=data,
                user_id=user_id,
            )
            self.session.add(model)
            await self.session.flush()
            await self._count_edit(session_pk, at or utcnow())
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        await self.session.refresh(model)
        return _to_entity(model)

    async def read_all(self, session_pk: UUID) -> list[UpdateFragment]:
        return await self.read_since(session_pk, 0)

    async def read_since(self, session_pk: UUID, after_seq: int) -> list[UpdateFragment]:
        result = await self.session.execute(
            select(UpdateFragmentModel)
            .where(
                UpdateFragmentModel.session_pk == session_pk,
                UpdateFragmentModel.seq > after_seq,
            )
            .order_by(UpdateFragmentModel.seq.asc())
        )
        return [_to_entity(m) for m in result.scalars().all()]

    async def read_for_note(self, note_id: UUID) -> list[UpdateFragment]:
        """Every fragment of every session of a note, oldest session first."""
        result = await self.session.execute(
            select(UpdateFragmentModel)
            .join(
                CollaborativeSessionModel,
                CollaborativeSessionModel.id == UpdateFragmentModel.session_pk,
            )
            .where(CollaborativeSessionModel.note_id == note_id)
            .order_by(
                CollaborativeSessionModel.started_at.asc(),
                CollaborativeSessionModel.id.asc(),
                UpdateFragmentModel.seq.asc(),
            )
        )
        return [_to_entity(m) for m in result.scalars().all()]

    async def _count_edit(self, session_pk: UUID, at: datetime) -> None:
        await self.session.execute(
            update(CollaborativeSessionModel)
            .where(CollaborativeSessionModel.id == session_pk)
            .values(
                total_edits=CollaborativeSessionModel.total_edits + 1,
                last_activity=at,
            )
        )

    async def _next_seq(self, session_pk: UUID) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.max(UpdateFragmentModel.seq), 0))
            .where(UpdateFragmentModel.session_pk == session_pk)
        )
        return result.scalar_one() + 1


def _to_entity(model: UpdateFragmentModel) -> UpdateFragment:
    return UpdateFragment(
        id=model.id,
        session_pk=model.session_pk,
        seq=model.seq,
        data=model.fragment,
        user_id=model.user_id,
        created_at=model.created_at,
    )
