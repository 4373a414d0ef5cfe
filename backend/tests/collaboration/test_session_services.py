import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from collaboration.application.services import (
    end_abandoned_sessions,
    end_session,
    get_session,
    join_session,
    leave_session,
    load_note_state,
    load_note_text,
    read_log,
    record_conflict,
    record_edit,
    start_session,
)
from collaboration.infrastructure.session_repository import DbSessionRepository
from collaboration.infrastructure.update_log_repository import DbUpdateLogRepository
from collaboration.infrastructure.yjs_adapter import apply_update, create_doc, get_text
from notes.application.services import create_note
from notes.infrastructure.note_repository import DbNoteRepository
from shared.exceptions import ConflictError, NotFoundError, SessionClosedError

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock(T0)
    monkeypatch.setattr("collaboration.application.services.utcnow", fake)
    return fake


@pytest.fixture
def repo(db):
    return DbSessionRepository(db)


@pytest.fixture
def note_repo(db):
    return DbNoteRepository(db)


@pytest.fixture
def log(db):
    return DbUpdateLogRepository(db)


def _fragments(*words: str) -> list[bytes]:
    doc = create_doc()
    content = doc["content"]
    out = []
    for word in words:
        before = doc.get_state()
        content += word
        out.append(doc.get_update(before))
    return out


async def test_start_creates_session(repo, note_repo, locks, note, user):
    session = await start_session(repo, note_repo, locks, note.id, user.id)
    assert session.is_active
    assert session.note_id == note.id
    assert session.participants == [user.id]
    assert session.total_participants == 1
    assert session.ended_at is None


async def test_start_uses_client_session_id(repo, note_repo, locks, note, user):
    session = await start_session(repo, note_repo, locks, note.id, user.id, session_id="client-abc")
    assert session.session_id == "client-abc"


async def test_start_is_idempotent(repo, note_repo, locks, note, user, other_user):
    first = await start_session(repo, note_repo, locks, note.id, user.id)
    second = await start_session(repo, note_repo, locks, note.id, other_user.id)
    again = await start_session(repo, note_repo, locks, note.id, user.id)

    assert first.session_id == second.session_id == again.session_id
    assert set(again.participants) == {user.id, other_user.id}
    assert again.total_participants == 2
    assert len(await repo.list_active_for_note(note.id)) == 1


async def test_start_on_missing_note(repo, note_repo, locks, user):
    with pytest.raises(NotFoundError):
        await start_session(repo, note_repo, locks, uuid4(), user.id)


async def test_duplicate_client_session_id(repo, note_repo, locks, note, user):
    other_note = await create_note(note_repo, title="Other", owner_id=user.id)
    await start_session(repo, note_repo, locks, note.id, user.id, session_id="shared-id")
    with pytest.raises(ConflictError):
        await start_session(repo, note_repo, locks, other_note.id, user.id, session_id="shared-id")


async def test_racing_start_keeps_newest(repo, note_repo, locks, note, user, clock):
    stale = await repo.create(note_id=note.id, session_id="stale", user_id=user.id, at=clock())
    clock.advance(1)

    # Simulate a second process that checked for active sessions before
    # "stale" was committed.
    real_list = repo.list_active_for_note
    calls = []

    async def list_once_empty(note_id):
        calls.append(note_id)
        if len(calls) == 1:
            return []
        return await real_list(note_id)

    repo.list_active_for_note = list_once_empty
    fresh = await start_session(repo, note_repo, locks, note.id, user.id)

    assert fresh.session_id != stale.session_id
    assert fresh.is_active
    assert not (await get_session(repo, "stale")).is_active


async def test_join_and_leave(repo, note_repo, locks, note, user, other_user):
    session = await start_session(repo, note_repo, locks, note.id, user.id)

    joined = await join_session(repo, locks, session.session_id, other_user.id)
    assert set(joined.participants) == {user.id, other_user.id}

    left = await leave_session(repo, locks, session.session_id, other_user.id)
    assert left.participants == [user.id]
    assert left.is_active

    rejoined = await join_session(repo, locks, session.session_id, other_user.id)
    assert rejoined.total_participants == 2


async def test_join_missing_session(repo, locks, user):
    with pytest.raises(NotFoundError):
        await join_session(repo, locks, "nope", user.id)


async def test_record_edit(repo, note_repo, log, locks, note, user, clock):
    session = await start_session(repo, note_repo, locks, note.id, user.id)
    clock.advance(5)

    first, second = _fragments("Hello", " there")
    stored = await record_edit(repo, log, locks, session.session_id, first, user_id=user.id)
    await record_edit(repo, log, locks, session.session_id, second, user_id=user.id)

    updated = await get_session(repo, session.session_id)
    assert stored.seq == 1
    assert updated.total_edits == 2
    assert updated.last_activity == T0 + timedelta(seconds=5)
    assert [f.seq for f in await read_log(repo, log, session.session_id)] == [1, 2]
    assert [f.seq for f in await read_log(repo, log, session.session_id, after_seq=1)] == [2]


async def test_failed_edit_leaves_no_trace(repo, note_repo, log, locks, note, user, monkeypatch):
    session = await start_session(repo, note_repo, locks, note.id, user.id)

    async def fail(session_pk, at):
        raise RuntimeError("write failed")

    monkeypatch.setattr(log, "_count_edit", fail)
    with pytest.raises(RuntimeError):
        await record_edit(repo, log, locks, session.session_id, b"\x01")

    assert await read_log(repo, log, session.session_id) == []
    assert (await get_session(repo, session.session_id)).total_edits == 0


async def test_concurrent_edits_keep_every_increment(session_factory, locks, note, user):
    async with session_factory() as db:
        session = await start_session(
            DbSessionRepository(db), DbNoteRepository(db), locks, note.id, user.id
        )

    async def edit(payload: bytes):
        async with session_factory() as db:
            await record_edit(
                DbSessionRepository(db), DbUpdateLogRepository(db), locks, session.session_id, payload
            )

    await asyncio.gather(*(edit(bytes([i])) for i in range(5)))

    async with session_factory() as db:
        repo = DbSessionRepository(db)
        updated = await get_session(repo, session.session_id)
        fragments = await read_log(repo, DbUpdateLogRepository(db), session.session_id)
    assert updated.total_edits == 5
    assert [f.seq for f in fragments] == [1, 2, 3, 4, 5]


async def test_record_conflict(repo, note_repo, locks, note, user):
    session = await start_session(repo, note_repo, locks, note.id, user.id)
    await record_conflict(repo, locks, session.session_id)
    updated = await record_conflict(repo, locks, session.session_id)
    assert updated.conflict_resolutions == 2


async def test_end_session(repo, note_repo, log, locks, note, user, clock):
    session = await start_session(repo, note_repo, locks, note.id, user.id)
    clock.advance(10)

    ended = await end_session(repo, locks, session.session_id)
    assert not ended.is_active
    assert ended.ended_at == T0 + timedelta(seconds=10)
    assert ended.average_session_duration == pytest.approx(10.0)

    with pytest.raises(SessionClosedError):
        await record_edit(repo, log, locks, session.session_id, b"\x00")
    with pytest.raises(SessionClosedError):
        await join_session(repo, locks, session.session_id, user.id)
    with pytest.raises(SessionClosedError):
        await end_session(repo, locks, session.session_id)

    # Reads still work on ended sessions.
    assert await read_log(repo, log, session.session_id) == []


async def test_average_duration_is_running_mean(repo, note_repo, locks, note, user, clock):
    first = await start_session(repo, note_repo, locks, note.id, user.id)
    clock.advance(10)
    await end_session(repo, locks, first.session_id)

    clock.advance(10)
    second = await start_session(repo, note_repo, locks, note.id, user.id)
    assert second.session_id != first.session_id
    clock.advance(30)
    ended = await end_session(repo, locks, second.session_id)

    assert ended.average_session_duration == pytest.approx(20.0)


async def test_end_abandoned_sessions(repo, note_repo, locks, note, user, other_user, clock):
    other_note = await create_note(note_repo, title="Busy", owner_id=user.id)

    empty = await start_session(repo, note_repo, locks, note.id, user.id)
    busy = await start_session(repo, note_repo, locks, other_note.id, other_user.id)
    clock.advance(5)
    await leave_session(repo, locks, empty.session_id, user.id)

    clock.advance(60)
    assert await end_abandoned_sessions(repo, locks, timedelta(seconds=120)) == []

    clock.advance(120)
    ended = await end_abandoned_sessions(repo, locks, timedelta(seconds=120))
    assert [s.session_id for s in ended] == [empty.session_id]
    assert (await get_session(repo, busy.session_id)).is_active


async def test_load_note_text_spans_sessions(repo, note_repo, log, locks, note, user):
    hello, world = _fragments("Hello", " world")

    first = await start_session(repo, note_repo, locks, note.id, user.id)
    await record_edit(repo, log, locks, first.session_id, hello)
    await end_session(repo, locks, first.session_id)

    second = await start_session(repo, note_repo, locks, note.id, user.id)
    await record_edit(repo, log, locks, second.session_id, world)

    assert await load_note_text(log, note.id) == "Hello world"
    assert await load_note_text(log, note.id) == "Hello world"


async def test_load_note_state_merges_sessions(repo, note_repo, log, locks, note, user):
    hello, world = _fragments("Hello", " world")

    first = await start_session(repo, note_repo, locks, note.id, user.id)
    await record_edit(repo, log, locks, first.session_id, hello)
    await end_session(repo, locks, first.session_id)
    second = await start_session(repo, note_repo, locks, note.id, user.id)
    await record_edit(repo, log, locks, second.session_id, world)

    doc = create_doc()
    apply_update(doc, await load_note_state(log, note.id))
    assert get_text(doc) == "Hello world"


async def test_concurrent_ends_keep_running_mean(session_factory, locks, note, user, clock):
    async with session_factory() as db:
        repo = DbSessionRepository(db)
        await repo.create(note_id=note.id, session_id="first", user_id=user.id, at=clock())
        clock.advance(10)
        await repo.create(note_id=note.id, session_id="second", user_id=user.id, at=clock())
    clock.advance(30)

    async def end(session_id: str):
        async with session_factory() as db:
            return await end_session(DbSessionRepository(db), locks, session_id)

    ended = await asyncio.gather(end("first"), end("second"))

    assert {s.session_id: s.duration_seconds(clock()) for s in ended} == {
        "first": pytest.approx(40.0),
        "second": pytest.approx(30.0),
    }
    assert any(s.average_session_duration == pytest.approx(35.0) for s in ended)
