from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from activities.domain.entities import Activity, ActivityActor
from activities.infrastructure.models import ActivityModel
from auth.infrastructure.models import UserModel
from shared.clock import utcnow


class DbActivityRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_created_between(
        self, after: datetime, until: datetime, limit: int
    ) -> list[Activity]:
        """Activities with ``after < created_at <= until``, oldest first.

        Paging from the oldest end lets a caller continue from the last row
        it received when ``limit`` cuts the window short.
        """
        result = await self.session.execute(
            select(ActivityModel, UserModel)
            .outerjoin(UserModel, UserModel.id == ActivityModel.user_id)
            .where(
                ActivityModel.created_at > after,
                ActivityModel.created_at <= until,
            )
            .order_by(ActivityModel.created_at, ActivityModel.id)
            .limit(limit)
        )
        return [_to_entity(activity, user) for activity, user in result.all()]

    async def create(
        self,
        type: str,
        description: str,
        user_id: UUID | None = None,
        created_at: datetime | None = None,
    ) -> Activity:
        model = ActivityModel(
            type=type,
            description=description,
            user_id=user_id,
            created_at=created_at or utcnow(),
        )
        self.session.add(model)
        await self.session.commit()
        user = await self.session.get(UserModel, user_id) if user_id else None
        return _to_entity(model, user)


def _to_entity(model: ActivityModel, user: UserModel | None) -> Activity:
    return Activity(
        id=model.id,
        type=model.type,
        description=model.description,
        created_at=model.created_at,
        user=ActivityActor(id=user.id, name=user.name, email=user.email) if user else None,
    )
