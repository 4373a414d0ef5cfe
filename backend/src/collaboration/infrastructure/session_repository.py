from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from collaboration.domain.entities import CollaborativeSession
from collaboration.infrastructure.models import CollaborativeSessionModel, SessionParticipantModel
from shared.exceptions import ConflictError

Sessions = CollaborativeSessionModel
Participants = SessionParticipantModel


class DbSessionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_session_id(self, session_id: str) -> CollaborativeSession | None:
        result = await self.session.execute(
            select(Sessions)
            .where(Sessions.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return await self._to_entity(model) if model else None

    async def list_active_for_note(self, note_id: UUID) -> list[CollaborativeSession]:
        result = await self.session.execute(
            select(Sessions)
            .where(Sessions.note_id == note_id, Sessions.is_active.is_(True))
            .order_by(Sessions.started_at.desc())
            .execution_options(populate_existing=True)
        )
        return [await self._to_entity(m) for m in result.scalars().all()]

    async def create(
        self, note_id: UUID, session_id: str, user_id: UUID, at: datetime
    ) -> CollaborativeSession:
        model = Sessions(
            note_id=note_id,
            session_id=session_id,
            started_at=at,
            last_activity=at,
            total_participants=1,
        )
        self.session.add(model)
        try:
            await self.session.flush()
            self.session.add(Participants(session_pk=model.id, user_id=user_id, joined_at=at))
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ConflictError(f"Session id already in use: {session_id}")
        return await self._to_entity(model)

    async def add_participant(self, session_pk: UUID, user_id: UUID, at: datetime) -> bool:
        """Mark the user present; returns True when they never joined this session before."""
        result = await self.session.execute(
            update(Participants)
            .where(Participants.session_pk == session_pk, Participants.user_id == user_id)
            .values(left_at=None)
        )
        first_join = result.rowcount == 0
        if first_join:
            self.session.add(Participants(session_pk=session_pk, user_id=user_id, joined_at=at))
            await self.session.execute(
                update(Sessions)
                .where(Sessions.id == session_pk)
                .values(total_participants=Sessions.total_participants + 1)
            )
        await self._touch(session_pk, at)
        await self.session.commit()
        return first_join

    async def remove_participant(self, session_pk: UUID, user_id: UUID, at: datetime) -> None:
        await self.session.execute(
            update(Participants)
            .where(
                Participants.session_pk == session_pk,
                Participants.user_id == user_id,
                Participants.left_at.is_(None),
            )
            .values(left_at=at)
        )
        await self._touch(session_pk, at)
        await self.session.commit()

    async def increment_conflicts(self, session_pk: UUID, at: datetime) -> None:
        await self.session.execute(
            update(Sessions)
            .where(Sessions.id == session_pk)
            .values(conflict_resolutions=Sessions.conflict_resolutions + 1, last_activity=at)
        )
        await self.session.commit()

    async def ended_duration_stats(self, note_id: UUID) -> tuple[int, float | None]:
        """Number of ended sessions for a note and the running mean stored on the latest."""
        count = await self.session.scalar(
            select(func.count())
            .select_from(Sessions)
            .where(Sessions.note_id == note_id, Sessions.is_active.is_(False))
        )
        latest = await self.session.scalar(
            select(Sessions.average_session_duration)
            .where(Sessions.note_id == note_id, Sessions.is_active.is_(False))
            .order_by(Sessions.ended_at.desc())
            .limit(1)
        )
        return count or 0, latest

    async def end(self, session_pk: UUID, ended_at: datetime, average_duration: float) -> None:
        await self.session.execute(
            update(Sessions)
            .where(Sessions.id == session_pk, Sessions.is_active.is_(True))
            .values(
                is_active=False,
                ended_at=ended_at,
                last_activity=ended_at,
                average_session_duration=average_duration,
            )
        )
        await self.session.commit()

    async def list_abandoned(self, idle_before: datetime) -> list[CollaborativeSession]:
        someone_present = exists().where(
            Participants.session_pk == Sessions.id,
            Participants.left_at.is_(None),
        )
        result = await self.session.execute(
            select(Sessions)
            .where(
                Sessions.is_active.is_(True),
                Sessions.last_activity < idle_before,
                ~someone_present,
            )
            .order_by(Sessions.last_activity.asc())
            .execution_options(populate_existing=True)
        )
        return [await self._to_entity(m) for m in result.scalars().all()]

    async def _touch(self, session_pk: UUID, at: datetime) -> None:
        await self.session.execute(
            update(Sessions).where(Sessions.id == session_pk).values(last_activity=at)
        )

    async def _to_entity(self, model: CollaborativeSessionModel) -> CollaborativeSession:
        result = await self.session.execute(
            select(Participants.user_id)
            .where(Participants.session_pk == model.id, Participants.left_at.is_(None))
            .order_by(Participants.joined_at.asc(), Participants.id.asc())
        )
        return CollaborativeSession(
            id=model.id,
            note_id=model.note_id,
            session_id=model.session_id,
            participants=list(result.scalars().all()),
            is_active=model.is_active,
            started_at=model.started_at,
            ended_at=model.ended_at,
            last_activity=model.last_activity,
            total_edits=model.total_edits,
            total_participants=model.total_participants,
            average_session_duration=model.average_session_duration,
            conflict_resolutions=model.conflict_resolutions,
        )
