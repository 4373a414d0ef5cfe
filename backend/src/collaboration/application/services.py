import logging
import uuid
from datetime import timedelta
from uuid import UUID

from collaboration.domain.entities import CollaborativeSession, UpdateFragment
from collaboration.domain.repository import SessionRepository, UpdateLog
from collaboration.infrastructure.yjs_adapter import get_text, merge_updates, replay
from notes.application.services import get_note
from notes.domain.repository import NoteRepository
from shared.clock import utcnow
from shared.exceptions import NotFoundError, SessionClosedError
from shared.infrastructure.locks import SessionLocks

logger = logging.getLogger(__name__)


def _session_key(session_id: str) -> str:
    return f"session:{session_id}"


def _note_key(note_id: UUID) -> str:
    return f"note:{note_id}"


async def get_session(repo: SessionRepository, session_id: str) -> CollaborativeSession:
    session = await repo.get_by_session_id(session_id)
    if not session:
        raise NotFoundError("Session", session_id)
    return session


async def _get_open_session(repo: SessionRepository, session_id: str) -> CollaborativeSession:
    session = await get_session(repo, session_id)
    if not session.is_active:
        raise SessionClosedError(session_id)
    return session


async def start_session(
    repo: SessionRepository,
    note_repo: NoteRepository,
    locks: SessionLocks,
    note_id: UUID,
    user_id: UUID,
    session_id: str | None = None,
) -> CollaborativeSession:
    """Join the note's active session, or open a new one if there is none.

    Starting is idempotent: a second caller for the same note lands in the
    same session. A newly opened session ends any other session still
    marked active for the note.
    """
    await get_note(note_repo, note_id)

    async with locks.hold(_note_key(note_id)):
        active = await repo.list_active_for_note(note_id)
        if active:
            current = active[0]
            logger.info("User %s joining active session %s on note %s", user_id, current.session_id, note_id)
            return await join_session(repo, locks, current.session_id, user_id)

        now = utcnow()
        created = await repo.create(
            note_id=note_id,
            session_id=session_id or str(uuid.uuid4()),
            user_id=user_id,
            at=now,
        )
        logger.info("Started session %s on note %s by user %s", created.session_id, note_id, user_id)

        # Another process may have raced us past the note lock check; the
        # newest session wins and closes the older ones.
        for other in await repo.list_active_for_note(note_id):
            if (other.started_at, str(other.id)) < (created.started_at, str(created.id)):
                async with locks.hold(_session_key(other.session_id)):
                    await _close(repo, other)

    return await get_session(repo, created.session_id)


async def join_session(
    repo: SessionRepository, locks: SessionLocks, session_id: str, user_id: UUID
) -> CollaborativeSession:
    async with locks.hold(_session_key(session_id)):
        session = await _get_open_session(repo, session_id)
        if await repo.add_participant(session.id, user_id, utcnow()):
            logger.debug("User %s joined session %s for the first time", user_id, session_id)
        return await get_session(repo, session_id)


async def leave_session(
    repo: SessionRepository, locks: SessionLocks, session_id: str, user_id: UUID
) -> CollaborativeSession:
    """Remove a participant. The session stays open until explicitly ended."""
    async with locks.hold(_session_key(session_id)):
        session = await _get_open_session(repo, session_id)
        await repo.remove_participant(session.id, user_id, utcnow())
        return await get_session(repo, session_id)


async def end_session(
    repo: SessionRepository, locks: SessionLocks, session_id: str
) -> CollaborativeSession:
    session = await get_session(repo, session_id)
    async with locks.hold(_note_key(session.note_id)), locks.hold(_session_key(session_id)):
        session = await _get_open_session(repo, session_id)
        return await _close(repo, session)


async def _close(repo: SessionRepository, session: CollaborativeSession) -> CollaborativeSession:
    """Deactivate a session and fold its duration into the note's running mean.

    Callers hold the note lock, which orders every close on the note so each
    one reads the mean its predecessor stored. The note lock is always taken
    before a session lock.
    """
    now = utcnow()

    ended_before, previous_average = await repo.ended_duration_stats(session.note_id)
    duration = session.duration_seconds(now)
    if ended_before and previous_average is not None:
        average = (previous_average * ended_before + duration) / (ended_before + 1)
    else:
        average = duration

    await repo.end(session.id, ended_at=now, average_duration=average)
    logger.info(
        "Ended session %s after %.1fs (%d edits, %d conflicts)",
        session.session_id,
        duration,
        session.total_edits,
        session.conflict_resolutions,
    )
    return await get_session(repo, session.session_id)


async def record_edit(
    repo: SessionRepository,
    log: UpdateLog,
    locks: SessionLocks,
    session_id: str,
    fragment: bytes,
    user_id: UUID | None = None,
) -> UpdateFragment:
    async with locks.hold(_session_key(session_id)):
        session = await _get_open_session(repo, session_id)
        return await log.append(session.id, fragment, user_id, at=utcnow())


async def record_conflict(
    repo: SessionRepository, locks: SessionLocks, session_id: str
) -> CollaborativeSession:
    """Count one conflict resolved by the external merge engine."""
    async with locks.hold(_session_key(session_id)):
        session = await _get_open_session(repo, session_id)
        await repo.increment_conflicts(session.id, utcnow())
        return await get_session(repo, session_id)


async def read_log(
    repo: SessionRepository, log: UpdateLog, session_id: str, after_seq: int = 0
) -> list[UpdateFragment]:
    session = await get_session(repo, session_id)
    return await log.read_since(session.id, after_seq)


async def end_abandoned_sessions(
    repo: SessionRepository, locks: SessionLocks, grace_period: timedelta
) -> list[CollaborativeSession]:
    """End active sessions nobody has been present in for longer than the grace period."""
    ended = []
    for candidate in await repo.list_abandoned(utcnow() - grace_period):
        async with (
            locks.hold(_note_key(candidate.note_id)),
            locks.hold(_session_key(candidate.session_id)),
        ):
            session = await get_session(repo, candidate.session_id)
            if session.is_active and not session.participants:
                ended.append(await _close(repo, session))
    return ended


async def load_note_text(log: UpdateLog, note_id: UUID) -> str:
    fragments = await log.read_for_note(note_id)
    return get_text(replay(f.data for f in fragments))


async def load_note_state(log: UpdateLog, note_id: UUID) -> bytes:
    """The note's whole history compacted into a single update, for late joiners."""
    fragments = await log.read_for_note(note_id)
    return merge_updates([f.data for f in fragments])
