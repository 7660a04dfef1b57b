import json

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_change_feed, get_session_guard, get_slot_manager
from core.session_guard import SessionGuard
from main import app


@pytest.fixture
def guard(manager, clock):
    return SessionGuard(
        lambda: manager.force_reset(reason="session_expired"),
        inactivity_timeout=1800,
        warning_window=120,
        clock=clock,
    )


@pytest.fixture
def client(manager, guard, feed):
    app.dependency_overrides[get_slot_manager] = lambda: manager
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_session_guard] = lambda: guard
    # 不進入 lifespan：服務由 fixture 提供
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_state_uses_camel_case_and_version(client):
    body = client.get("/api/state").json()

    assert body["version"] == 0
    assert [s["id"] for s in body["state"]["slots"]] == [0, 1, 2]
    assert body["state"]["waitingList"] == []
    assert body["stats"] == {"total_participants": 0, "currently_in": 0, "completed_today": 0}
    assert body["reportable"] is False
    assert body["persistence_warning"] is None


def test_admit_and_release_flow(client, clock):
    response = client.post("/api/slots/0/admit", json={"name": "Kim", "memo": "VIP"})
    assert response.status_code == 200
    body = response.json()
    assert body["version"] == 1
    assert body["state"]["slots"][0]["participantName"] == "Kim"
    assert body["stats"]["currently_in"] == 1

    clock.advance(65)
    views = client.get("/api/slots/view").json()
    assert views[0]["elapsed"] == "00:01:05"
    assert views[0]["action"] == "end_experience"

    body = client.post("/api/slots/0/release").json()
    assert body["state"]["slots"][0]["participantName"] is None
    assert body["state"]["history"][0]["exitTime"] is not None
    assert body["stats"]["completed_today"] == 1


def test_admit_errors(client):
    client.post("/api/slots/0/admit", json={"name": "Kim"})

    assert client.post("/api/slots/0/admit", json={"name": "Lee"}).status_code == 400
    assert client.post("/api/slots/9/admit", json={"name": "Lee"}).status_code == 404
    assert client.post("/api/slots/1/admit", json={"name": "  "}).status_code == 400
    assert client.post("/api/slots/1/release").status_code == 400


def test_admit_from_empty_waiting_list_keeps_version(client):
    body = client.post("/api/slots/0/admit", json={"from_waitlist": True}).json()

    assert body["version"] == 0
    assert body["state"]["slots"][0]["participantName"] is None


def test_resize(client):
    client.post("/api/slots/0/admit", json={"name": "Kim"})

    assert len(client.put("/api/slots/count", json={"count": 5}).json()["state"]["slots"]) == 5
    client.post("/api/slots/4/admit", json={"name": "Lee"})

    response = client.put("/api/slots/count", json={"count": 2})
    assert response.status_code == 400
    assert "5" in response.json()["detail"]
    assert client.put("/api/slots/count", json={"count": 0}).status_code == 400
    assert client.get("/api/slots/available").json()[0]["id"] == 1


def test_waiting_list_flow(client, clock):
    response = client.post(
        "/api/waiting-list", json={"name": "Lee", "phone_number": "010-1234-5678"}
    )
    assert response.status_code == 200
    body = response.json()
    waiter_id = body["state"]["waitingList"][0]["id"]
    assert body["notification"]["uri"].startswith("sms:01012345678?body=")

    notified = client.post(f"/api/waiting-list/{waiter_id}/notify", params={"ios": True}).json()
    assert notified["state"]["waitingList"][0]["notified"] is True
    assert notified["notification"]["uri"].startswith("sms:01012345678&body=")

    clock.advance(301)
    view = client.get("/api/waiting-list/view").json()
    assert view[0]["elapsed_since_call"] == "05:01"
    assert view[0]["recall_overdue"] is True

    notice = client.post(f"/api/waiting-list/{waiter_id}/waiting-notice").json()
    assert "1번째" in notice["body"]

    body = client.post("/api/slots/0/admit", json={"from_waitlist": True}).json()
    assert body["state"]["slots"][0]["participantName"] == "Lee"
    assert body["state"]["waitingList"] == []


def test_waiting_list_errors(client):
    assert client.post("/api/waiting-list", json={"name": "Lee", "phone_number": ""}).status_code == 400
    assert client.delete("/api/waiting-list/missing").status_code == 404
    assert client.post("/api/waiting-list/missing/notify").status_code == 404
    assert client.post("/api/waiting-list/missing/waiting-notice").status_code == 404


def test_delete_waiter(client):
    body = client.post("/api/waiting-list", json={"name": "Lee", "phone_number": "010"}).json()
    waiter_id = body["state"]["waitingList"][0]["id"]

    assert client.delete(f"/api/waiting-list/{waiter_id}").json()["state"]["waitingList"] == []


def test_direct_admit(client):
    payload = {"name": "Choi", "phone_number": "010-3333-3333", "slot_id": 1}

    body = client.post("/api/waiting-list/direct-admit", json=payload).json()
    assert body["state"]["slots"][1]["memo"] == "010-3333-3333"

    client.put("/api/slots/count", json={"count": 2})
    client.post("/api/slots/0/admit", json={"name": "Kim"})
    response = client.post("/api/waiting-list/direct-admit", json={**payload, "slot_id": 0})
    assert response.status_code == 400


def test_report_download(client):
    client.post("/api/slots/0/admit", json={"name": "Kim"})

    response = client.get("/api/exports/report")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "filename*=UTF-8''" in response.headers["content-disposition"]
    assert response.content.startswith(b"\xef\xbb\xbf")
    assert '"Kim"' in response.content.decode("utf-8-sig")


def test_backup_export_and_restore(client):
    client.post("/api/slots/0/admit", json={"name": "Kim"})
    backup = client.get("/api/exports/backup")
    assert backup.status_code == 200
    assert "backup_2025-03-01.json" in backup.headers["content-disposition"]

    client.post("/api/system/reset")
    assert client.get("/api/state").json()["state"]["history"] == []

    body = client.post("/api/imports/backup", content=backup.content).json()
    assert body["state"] == json.loads(backup.content)


def test_restore_rejects_bad_backup(client):
    client.post("/api/slots/0/admit", json={"name": "Kim"})
    before = client.get("/api/state").json()

    response = client.post("/api/imports/backup", content=b'{"slots": []}')

    assert response.status_code == 400
    assert client.get("/api/state").json() == before


def test_session_endpoints(client, clock):
    assert client.get("/api/session").json()["phase"] == "ACTIVE"

    clock.advance(1700)
    assert client.post("/api/session/activity", json={"signal": "key_press"}).status_code == 200
    assert client.get("/api/session").json()["seconds_until_warning"] == 1680

    assert client.post("/api/session/activity", json={"signal": "wave"}).status_code == 400


def test_continue_clears_warning(client, guard, clock):
    clock.advance(1680)
    guard.tick()
    assert client.get("/api/session").json()["countdown_remaining"] == 120

    body = client.post("/api/session/continue").json()

    assert body["phase"] == "ACTIVE"
    assert body["countdown_remaining"] is None


def test_reportable_flag_follows_data(client):
    body = client.post("/api/waiting-list", json={"name": "Lee", "phone_number": "010"}).json()
    assert body["reportable"] is True

    assert client.post("/api/system/reset").json()["reportable"] is False


def test_long_poll_returns_newer_state(client):
    client.post("/api/slots/0/admit", json={"name": "Kim"})

    response = client.get("/api/state/changes", params={"since": 0, "timeout": 0})

    assert response.status_code == 200
    assert response.json()["version"] == 1
    assert response.json()["state"]["slots"][0]["participantName"] == "Kim"


def test_long_poll_times_out_without_change(client):
    client.post("/api/slots/0/admit", json={"name": "Kim"})

    response = client.get("/api/state/changes", params={"since": 1, "timeout": 0.05})

    assert response.status_code == 204
    assert client.get("/api/state/changes", params={"since": 0, "timeout": 60}).status_code == 422


def test_restore_rejects_gapped_slot_ids(client):
    blob = b'{"slots": [{"id": 0}, {"id": 2}], "history": [], "waitingList": []}'

    response = client.post("/api/imports/backup", content=blob)

    assert response.status_code == 400
    assert [s["id"] for s in client.get("/api/state").json()["state"]["slots"]] == [0, 1, 2]
