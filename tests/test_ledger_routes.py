import pytest
from fastapi.testclient import TestClient

from devhire_sync.main import app
from devhire_sync.models.schemas import EntityType, JobRequest
from devhire_sync.services.notifications import NotificationDispatcher
from devhire_sync.services.status_ledger import StatusLedger

client = TestClient(app)

@pytest.fixture
def ledger(monkeypatch):
    ledger = StatusLedger()
    monkeypatch.setattr("devhire_sync.routers.ledger.get_ledger", lambda: ledger)
    return ledger

@pytest.fixture
def dispatcher(monkeypatch, ledger):
    dispatcher = NotificationDispatcher()
    dispatcher.attach(ledger)
    monkeypatch.setattr("devhire_sync.routers.notifications.get_dispatcher", lambda: dispatcher)
    return dispatcher

def test_list_entries(ledger):
    ledger.record(JobRequest(id=1, client_id=10, developer_id=20, title="Data pipeline", status="pending"))
    ledger.apply(EntityType.PROPOSAL, 2, "accepted")

    response = client.get("/ledger")

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 2
    assert data[0]["entityType"] == "job_request"
    assert data[0]["entity"]["title"] == "Data pipeline"
    assert data[1]["entity"] is None

def test_list_entries_by_type_and_status(ledger):
    ledger.apply(EntityType.PROPOSAL, 2, "accepted")
    ledger.apply(EntityType.PROPOSAL, 3, "pending")
    ledger.apply(EntityType.WITHDRAWAL, 4, "pending")

    response = client.get("/ledger/proposal", params={"status": "pending"})

    assert response.status_code == 200
    assert [entry["entityId"] for entry in response.json()] == [3]

def test_unknown_entity_type(ledger):
    response = client.get("/ledger/invoice")
    assert response.status_code == 422

def test_get_entry(ledger):
    ledger.apply(EntityType.WITHDRAWAL, 4, "processed")

    response = client.get("/ledger/withdrawal/4")

    assert response.status_code == 200
    assert response.json()["status"] == "processed"

def test_get_untracked_entry(ledger):
    response = client.get("/ledger/withdrawal/99")
    assert response.status_code == 404

def test_notification_inbox(ledger, dispatcher):
    ledger.apply(EntityType.PROPOSAL, 2, "pending")
    ledger.apply(EntityType.PROPOSAL, 2, "accepted")
    ledger.apply(EntityType.JOB_REQUEST, 5, "pending")
    ledger.apply(EntityType.JOB_REQUEST, 5, "declined")

    response = client.get("/notifications")
    assert response.status_code == 200
    data = response.json()
    assert [n["title"] for n in data] == ["Job Request Declined", "Proposal Accepted"]
    assert data[0]["severity"] == "warning"
    assert data[0]["isRead"] is False

    assert client.get("/notifications/unread-count").json() == {"unreadCount": 2}

    read = client.put(f"/notifications/{data[1]['id']}/read")
    assert read.status_code == 200
    assert read.json()["isRead"] is True

    unread = client.get("/notifications", params={"unread_only": True}).json()
    assert [n["title"] for n in unread] == ["Job Request Declined"]

    assert client.put("/notifications/read-all").json() == {"updated": 1}
    assert client.get("/notifications/unread-count").json() == {"unreadCount": 0}

def test_delete_notification(ledger, dispatcher):
    ledger.apply(EntityType.WITHDRAWAL, 4, "pending")
    ledger.apply(EntityType.WITHDRAWAL, 4, "processed")
    notification_id = dispatcher.notifications()[0].id

    response = client.delete(f"/notifications/{notification_id}")
    assert response.status_code == 204
    assert dispatcher.notifications() == []

    response = client.delete(f"/notifications/{notification_id}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Notification not found"

def test_mark_missing_notification_read(dispatcher):
    response = client.put("/notifications/42/read")
    assert response.status_code == 404
