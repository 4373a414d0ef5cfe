from datetime import timedelta
from uuid import uuid4

import pytest

from auth.application.services import create_access_token, verify_token
from auth.infrastructure.user_repository import DbUserRepository
from shared.exceptions import AuthenticationError


async def test_verify_token_returns_user(db, user):
    found = await verify_token(DbUserRepository(db), create_access_token(user.id))
    assert found.id == user.id
    assert found.email == "alice@example.com"


async def test_verify_expired_token(db, user):
    token = create_access_token(user.id, expires_in=timedelta(seconds=-1))
    with pytest.raises(AuthenticationError, match="Invalid or expired token"):
        await verify_token(DbUserRepository(db), token)


async def test_verify_garbage_token(db):
    with pytest.raises(AuthenticationError):
        await verify_token(DbUserRepository(db), "not-a-jwt")


async def test_verify_token_for_unknown_user(db):
    with pytest.raises(AuthenticationError, match="User not found"):
        await verify_token(DbUserRepository(db), create_access_token(uuid4()))


async def test_me(client, auth_headers):
    resp = await client.get("/api/auth/me", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Alice"


async def test_me_without_token(client):
    resp = await client.get("/api/auth/me")
    assert resp.status_code == 401


async def test_me_with_bad_token(client):
    resp = await client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
