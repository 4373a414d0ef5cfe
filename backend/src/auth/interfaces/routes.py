from fastapi import APIRouter, Depends

from auth.domain.entities import User
from auth.interfaces.schemas import UserResponse
from shared.dependencies import get_current_user

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
