import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from activities.infrastructure.activity_repository import DbActivityRepository
from auth.domain.entities import User
from presence.infrastructure.presence_repository import DbPresenceRepository
from realtime.application.services import poll
from realtime.domain.repository import NotificationSource
from realtime.infrastructure.notifications import NullNotificationSource
from realtime.interfaces.schemas import PollErrorResponse, PollResponse
from shared.dependencies import get_current_user, get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/realtime", tags=["realtime"])


def get_notification_source() -> NotificationSource:
    return NullNotificationSource()


@router.get(
    "/poll",
    response_model=PollResponse,
    response_model_by_alias=True,
    responses={500: {"model": PollErrorResponse}},
)
async def poll_updates(
    last_poll_time: datetime | None = Query(default=None, alias="lastPollTime"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifications: NotificationSource = Depends(get_notification_source),
):
    logger.info(
        "Realtime poll request user=%s lastPollTime=%s",
        current_user.id,
        last_poll_time.isoformat() if last_poll_time else None,
    )
    try:
        result = await poll(
            DbActivityRepository(db),
            DbPresenceRepository(db),
            notifications,
            user_id=current_user.id,
            watermark=last_poll_time,
        )
    except Exception:
        logger.exception("Realtime poll failed for user %s", current_user.id)
        return JSONResponse(
            status_code=500,
            content=PollErrorResponse(error="Failed to fetch real-time updates").model_dump(),
        )
    return PollResponse.from_result(result)
