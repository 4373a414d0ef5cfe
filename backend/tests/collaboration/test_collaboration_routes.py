import base64
from uuid import uuid4

import pytest

from collaboration.infrastructure.yjs_adapter import apply_update, create_doc, get_text


def _encoded_edits(*words: str) -> list[str]:
    doc = create_doc()
    content = doc["content"]
    out = []
    for word in words:
        before = doc.get_state()
        content += word
        out.append(base64.b64encode(doc.get_update(before)).decode())
    return out


@pytest.fixture
async def started(client, auth_headers, note):
    resp = await client.post(
        "/api/collaboration/sessions/start",
        json={"noteId": str(note.id)},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    return resp.json()


async def test_start_session(started, note, user):
    assert started["noteId"] == str(note.id)
    assert started["isActive"] is True
    assert started["participants"] == [str(user.id)]
    assert started["totalEdits"] == 0


async def test_second_start_joins(client, other_headers, started, note):
    resp = await client.post(
        "/api/collaboration/sessions/start",
        json={"noteId": str(note.id)},
        headers=other_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["sessionId"] == started["sessionId"]
    assert resp.json()["totalParticipants"] == 2


async def test_start_requires_auth(client, note):
    resp = await client.post("/api/collaboration/sessions/start", json={"noteId": str(note.id)})
    assert resp.status_code == 401


async def test_get_unknown_session(client, auth_headers):
    resp = await client.get("/api/collaboration/sessions/missing", headers=auth_headers)
    assert resp.status_code == 404


async def test_edit_and_read_back(client, auth_headers, started, note):
    session_id = started["sessionId"]
    edits = _encoded_edits("Hello", " world")

    for expected_seq, update in enumerate(edits, start=1):
        resp = await client.post(
            f"/api/collaboration/sessions/{session_id}/updates",
            json={"update": update},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["sequence"] == expected_seq

    resp = await client.get(f"/api/collaboration/sessions/{session_id}/updates", headers=auth_headers)
    assert [f["update"] for f in resp.json()] == edits

    resp = await client.get(
        f"/api/collaboration/sessions/{session_id}/updates",
        params={"after": 1},
        headers=auth_headers,
    )
    assert [f["sequence"] for f in resp.json()] == [2]

    resp = await client.get(f"/api/collaboration/notes/{note.id}/text", headers=auth_headers)
    assert resp.json() == {"noteId": str(note.id), "text": "Hello world"}

    resp = await client.get(f"/api/collaboration/sessions/{session_id}", headers=auth_headers)
    assert resp.json()["totalEdits"] == 2


async def test_edit_marks_presence_editing(client, auth_headers, started, note, user):
    (update,) = _encoded_edits("x")
    await client.post(
        f"/api/collaboration/sessions/{started['sessionId']}/updates",
        json={"update": update},
        headers=auth_headers,
    )
    resp = await client.get(f"/api/presence/note/{note.id}", headers=auth_headers)
    records = resp.json()
    assert [(r["userId"], r["status"]) for r in records] == [(str(user.id), "editing")]


async def test_edit_rejects_bad_payload(client, auth_headers, started):
    resp = await client.post(
        f"/api/collaboration/sessions/{started['sessionId']}/updates",
        json={"update": "***not base64***"},
        headers=auth_headers,
    )
    assert resp.status_code == 422


async def test_conflicts_counter(client, auth_headers, started):
    resp = await client.post(
        f"/api/collaboration/sessions/{started['sessionId']}/conflicts", headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json()["conflictResolutions"] == 1


async def test_leave_keeps_session_open(client, auth_headers, started):
    resp = await client.post(
        f"/api/collaboration/sessions/{started['sessionId']}/leave", headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json()["participants"] == []
    assert resp.json()["isActive"] is True


async def test_edit_after_end_is_rejected(client, auth_headers, started):
    session_id = started["sessionId"]
    resp = await client.post(f"/api/collaboration/sessions/{session_id}/end", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["isActive"] is False
    assert resp.json()["endedAt"] is not None

    (update,) = _encoded_edits("late")
    resp = await client.post(
        f"/api/collaboration/sessions/{session_id}/updates",
        json={"update": update},
        headers=auth_headers,
    )
    assert resp.status_code == 409

    resp = await client.post(f"/api/collaboration/sessions/{session_id}/join", headers=auth_headers)
    assert resp.status_code == 409


async def test_note_state_compacts_history(client, auth_headers, started, note):
    for update in _encoded_edits("Hello", " world"):
        await client.post(
            f"/api/collaboration/sessions/{started['sessionId']}/updates",
            json={"update": update},
            headers=auth_headers,
        )

    resp = await client.get(f"/api/collaboration/notes/{note.id}/state", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["noteId"] == str(note.id)

    doc = create_doc()
    apply_update(doc, base64.b64decode(resp.json()["state"]))
    assert get_text(doc) == "Hello world"


async def test_note_state_for_unknown_note(client, auth_headers):
    resp = await client.get(f"/api/collaboration/notes/{uuid4()}/state", headers=auth_headers)
    assert resp.status_code == 404
