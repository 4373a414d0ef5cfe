from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth.application.services import verify_token
from auth.domain.entities import User
from auth.infrastructure.user_repository import DbUserRepository
from shared.config import settings
from shared.exceptions import AuthenticationError
from shared.infrastructure.database import async_session
from shared.infrastructure.locks import LocalSessionLocks, RedisSessionLocks, SessionLocks
from shared.infrastructure.redis import get_redis_pool

security = HTTPBearer(auto_error=False)

_local_locks = LocalSessionLocks()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    if credentials is None:
        raise AuthenticationError("Missing bearer token")
    repo = DbUserRepository(db)
    return await verify_token(repo, credentials.credentials)


def get_session_locks() -> SessionLocks:
    if settings.SESSION_LOCK_BACKEND == "local":
        return _local_locks
    return RedisSessionLocks(get_redis_pool(), timeout=settings.SESSION_LOCK_TIMEOUT_SECONDS)
