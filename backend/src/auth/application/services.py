from datetime import timedelta
from uuid import UUID

import jwt

from auth.domain.entities import User
from auth.domain.repository import UserRepository
from shared.clock import utcnow
from shared.config import settings
from shared.exceptions import AuthenticationError

# Tokens are issued by the external identity service; this service only
# verifies them. create_access_token exists for tooling and tests that share
# the signing secret.


async def verify_token(repo: UserRepository, token: str) -> User:
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
        user_id = UUID(payload["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        raise AuthenticationError("Invalid or expired token")

    user = await repo.get_by_id(user_id)
    if not user:
        raise AuthenticationError("User not found")
    return user


def create_access_token(user_id: UUID, expires_in: timedelta | None = None) -> str:
    now = utcnow()
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + (expires_in or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
