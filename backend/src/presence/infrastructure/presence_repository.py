from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from auth.infrastructure.models import UserModel
from presence.domain.entities import OnlineUser, PresenceRecord, PresenceStatus, ResourceType
from presence.infrastructure.models import PresenceModel

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

presence_table = PresenceModel.__table__


class DbPresenceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(self, record: PresenceRecord) -> PresenceRecord:
        """Insert or refresh the single row for (user, resource type, resource id).

        The conflict update only applies when the incoming ``last_seen`` is
        not older than the stored one, so out-of-order heartbeats lose.
        """
        dialect = self.session.get_bind().dialect.name
        insert = _UPSERT_INSERTS[dialect]

        stmt = insert(presence_table).values(
            id=uuid4(),
            user_id=record.user_id,
            resource_type=record.resource_type,
            resource_id=record.resource_id,
            is_active=True,
            last_seen=record.last_seen,
            status=record.status,
            cursor_position=record.cursor_position,
            selection=record.selection,
            metadata=record.metadata or {},
            created_at=record.last_seen,
            updated_at=record.last_seen,
        )
        excluded = stmt.excluded
        changes = {
            "is_active": True,
            "status": excluded["status"],
            "last_seen": excluded["last_seen"],
            "updated_at": excluded["updated_at"],
        }
        # Omitted payloads keep the last known cursor/selection for quick resume.
        if record.cursor_position is not None:
            changes["cursor_position"] = excluded["cursor_position"]
        if record.selection is not None:
            changes["selection"] = excluded["selection"]
        if record.metadata:
            changes["metadata"] = excluded["metadata"]

        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "resource_type", "resource_id"],
            set_=changes,
            where=presence_table.c.last_seen <= excluded["last_seen"],
        )
        await self.session.execute(stmt)
        await self.session.commit()

        return await self.get(record.user_id, record.resource_type, record.resource_id)

    async def get(
        self, user_id: UUID, resource_type: ResourceType, resource_id: str
    ) -> PresenceRecord | None:
        result = await self.session.execute(
            select(PresenceModel)
            .where(
                PresenceModel.user_id == user_id,
                PresenceModel.resource_type == resource_type,
                PresenceModel.resource_id == resource_id,
            )
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return _to_entity(model) if model else None

    async def list_active(
        self, resource_type: ResourceType, resource_id: str, seen_since: datetime
    ) -> list[PresenceRecord]:
        result = await self.session.execute(
            select(PresenceModel)
            .where(
                PresenceModel.resource_type == resource_type,
                PresenceModel.resource_id == resource_id,
                PresenceModel.is_active.is_(True),
                PresenceModel.last_seen >= seen_since,
            )
            .order_by(PresenceModel.last_seen.desc())
            .execution_options(populate_existing=True)
        )
        return [_to_entity(m) for m in result.scalars().all()]

    async def mark_inactive(
        self, user_id: UUID, resource_type: ResourceType, resource_id: str, at: datetime
    ) -> bool:
        result = await self.session.execute(
            update(PresenceModel)
            .where(
                PresenceModel.user_id == user_id,
                PresenceModel.resource_type == resource_type,
                PresenceModel.resource_id == resource_id,
            )
            .values(is_active=False, status=PresenceStatus.IDLE, last_seen=at, updated_at=at)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def set_status_where_stale(
        self, from_status: PresenceStatus, to_status: PresenceStatus, seen_before: datetime
    ) -> int:
        result = await self.session.execute(
            update(PresenceModel)
            .where(
                PresenceModel.status == from_status,
                PresenceModel.last_seen < seen_before,
            )
            .values(status=to_status)
        )
        await self.session.commit()
        return result.rowcount

    async def online_users(self, seen_since: datetime, limit: int) -> list[OnlineUser]:
        last_active = func.max(PresenceModel.last_seen).label("last_active_at")
        result = await self.session.execute(
            select(UserModel.id, UserModel.name, UserModel.email, last_active)
            .join(PresenceModel, PresenceModel.user_id == UserModel.id)
            .where(
                PresenceModel.is_active.is_(True),
                PresenceModel.last_seen >= seen_since,
            )
            .group_by(UserModel.id, UserModel.name, UserModel.email)
            .order_by(last_active.desc())
            .limit(limit)
        )
        return [
            OnlineUser(id=row.id, name=row.name, email=row.email, last_active_at=row.last_active_at)
            for row in result.all()
        ]

    async def count_online(self, seen_since: datetime) -> int:
        return await self.session.scalar(
            select(func.count(func.distinct(PresenceModel.user_id))).where(
                PresenceModel.is_active.is_(True),
                PresenceModel.last_seen >= seen_since,
            )
        )

    async def delete_seen_before(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(PresenceModel).where(PresenceModel.last_seen < cutoff)
        )
        await self.session.commit()
        return result.rowcount


def _to_entity(model: PresenceModel) -> PresenceRecord:
    return PresenceRecord(
        id=model.id,
        user_id=model.user_id,
        resource_type=ResourceType(model.resource_type),
        resource_id=model.resource_id,
        status=PresenceStatus(model.status),
        is_active=model.is_active,
        last_seen=model.last_seen,
        cursor_position=model.cursor_position,
        selection=model.selection,
        metadata=model.extra or {},
    )
