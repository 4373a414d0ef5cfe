from datetime import timedelta

from collaboration.infrastructure.session_repository import DbSessionRepository
from maintenance import run_maintenance
from notes.application.services import create_note
from notes.infrastructure.note_repository import DbNoteRepository
from presence.domain.entities import PresenceRecord, PresenceStatus, ResourceType
from presence.infrastructure.presence_repository import DbPresenceRepository
from shared.clock import utcnow


async def test_run_maintenance(db, session_factory, locks, note, user, other_user):
    an_hour_ago = utcnow() - timedelta(hours=1)
    sessions = DbSessionRepository(db)
    abandoned = await sessions.create(
        note_id=note.id, session_id="abandoned", user_id=user.id, at=an_hour_ago
    )
    await sessions.remove_participant(abandoned.id, user.id, an_hour_ago)
    busy_note = await create_note(DbNoteRepository(db), title="Busy", owner_id=user.id)
    await sessions.create(note_id=busy_note.id, session_id="busy", user_id=other_user.id, at=an_hour_ago)

    presence = DbPresenceRepository(db)
    await presence.upsert(
        PresenceRecord(
            user_id=user.id,
            resource_type=ResourceType.NOTE,
            resource_id=str(note.id),
            status=PresenceStatus.EDITING,
            last_seen=utcnow() - timedelta(minutes=2),
        )
    )
    await presence.upsert(
        PresenceRecord(
            user_id=user.id,
            resource_type=ResourceType.LEAD,
            resource_id="l1",
            last_seen=utcnow() - timedelta(days=30),
        )
    )
    await presence.upsert(
        PresenceRecord(
            user_id=other_user.id,
            resource_type=ResourceType.NOTE,
            resource_id=str(busy_note.id),
            last_seen=utcnow(),
        )
    )

    report = await run_maintenance(session_factory, locks)

    assert report.ended_sessions == ["abandoned"]
    assert report.idled == 1
    assert report.reaped == 1
    assert report.online == 2

    assert not (await sessions.get_by_session_id("abandoned")).is_active
    assert (await sessions.get_by_session_id("busy")).is_active
    quiet = await presence.get(user.id, ResourceType.NOTE, str(note.id))
    assert quiet.status == PresenceStatus.IDLE
    assert await presence.get(user.id, ResourceType.LEAD, "l1") is None


async def test_run_maintenance_with_nothing_to_do(session_factory, locks):
    report = await run_maintenance(session_factory, locks)
    assert report.ended_sessions == []
    assert (report.idled, report.reaped, report.online) == (0, 0, 0)
