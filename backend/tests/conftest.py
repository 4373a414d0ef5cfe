import os

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from auth.application.services import create_access_token
from auth.domain.entities import User
from auth.infrastructure.user_repository import DbUserRepository
from main import app
from notes.application.services import create_note
from notes.infrastructure.note_repository import DbNoteRepository
from shared.dependencies import get_db, get_session_locks
from shared.infrastructure.database import Base
from shared.infrastructure.locks import LocalSessionLocks

import activities.infrastructure.models  # noqa: F401
import auth.infrastructure.models  # noqa: F401
import collaboration.infrastructure.models  # noqa: F401
import notes.infrastructure.models  # noqa: F401
import presence.infrastructure.models  # noqa: F401


@pytest.fixture
async def test_engine(tmp_path):
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_async_engine(url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return LocalSessionLocks()


@pytest.fixture(autouse=True)
async def override_dependencies(session_factory, locks):
    async def _override_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_db
    app.dependency_overrides[get_session_locks] = lambda: locks
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db):
    repo = DbUserRepository(db)

    async def _make(name: str = "Alice", email: str | None = None) -> User:
        return await repo.create(User(name=name, email=email or f"{name.lower()}@example.com"))

    return _make


@pytest.fixture
async def user(make_user):
    return await make_user("Alice")


@pytest.fixture
async def other_user(make_user):
    return await make_user("Bob")


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def auth_headers(user) -> dict:
    return bearer(user)


@pytest.fixture
def other_headers(other_user) -> dict:
    return bearer(other_user)


@pytest.fixture
async def note(db, user):
    return await create_note(DbNoteRepository(db), title="Pipeline review", owner_id=user.id)
