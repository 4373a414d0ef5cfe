from datetime import timedelta

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth.domain.entities import User
from presence.application.services import list_active, mark_inactive, upsert_presence
from presence.domain.entities import ResourceType
from presence.infrastructure.presence_repository import DbPresenceRepository
from presence.interfaces.schemas import PresenceHeartbeatRequest, PresenceResponse
from shared.config import settings
from shared.dependencies import get_current_user, get_db

router = APIRouter(prefix="/api/presence", tags=["presence"])


@router.put(
    "/{resource_type}/{resource_id}",
    response_model=PresenceResponse,
    response_model_by_alias=True,
)
async def heartbeat(
    resource_type: ResourceType,
    resource_id: str,
    body: PresenceHeartbeatRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await upsert_presence(
        DbPresenceRepository(db),
        user_id=current_user.id,
        resource_type=resource_type,
        resource_id=resource_id,
        status=body.status,
        cursor_position=body.cursor_position,
        selection=body.selection,
        metadata=body.metadata,
    )


@router.delete(
    "/{resource_type}/{resource_id}",
    response_model=PresenceResponse,
    response_model_by_alias=True,
)
async def leave(
    resource_type: ResourceType,
    resource_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await mark_inactive(
        DbPresenceRepository(db), current_user.id, resource_type, resource_id
    )


@router.get(
    "/{resource_type}/{resource_id}",
    response_model=list[PresenceResponse],
    response_model_by_alias=True,
)
async def who_is_here(
    resource_type: ResourceType,
    resource_id: str,
    staleness_seconds: int = Query(
        default=settings.PRESENCE_STALENESS_SECONDS, alias="stalenessSeconds", ge=1
    ),
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_active(
        DbPresenceRepository(db),
        resource_type,
        resource_id,
        timedelta(seconds=staleness_seconds),
    )
