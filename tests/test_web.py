import pytest
import asyncio
from fastapi.testclient import TestClient
from unittest.mock import patch

from focus_voyage.models.events import DistractionEvent, SignalType
from focus_voyage.models.session import NewSession, SessionStatus
from focus_voyage.services.database import SQLiteStore
from focus_voyage.services.errors import DatabaseError
from focus_voyage.web.app import app, get_store

@pytest.fixture
def store():
    store = SQLiteStore(":memory:")
    app.dependency_overrides[get_store] = lambda: store
    yield store
    app.dependency_overrides.clear()
    store.close()

@pytest.fixture
def test_client(store):
    """Create a test client for the FastAPI app"""
    return TestClient(app)

@pytest.fixture
def completed_session(store, test_client):
    """A finished 100 s session with one 20 s idle episode"""
    async def seed():
        session = await store.create_session(NewSession(
            owner_id="owner", destination_id="thesis", start_mark=0.0, planned_duration_minutes=2
        ))
        event = DistractionEvent(session_id=session.id, signal_type=SignalType.IDLE, detected_at=5000.0)
        event.resolve(20000.0)
        await store.insert_event(event)
        return await store.update_session(session.id, {
            "status": SessionStatus.COMPLETED,
            "actual_duration_ms": 100000.0,
            "distraction_count": 1,
        })

    return asyncio.run(seed())

def test_health(test_client):
    response = test_client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_list_sessions(test_client, completed_session):
    response = test_client.get("/api/sessions", params={"owner": "owner"})
    assert response.status_code == 200
    data = response.json()
    assert [s["id"] for s in data] == [completed_session.id]
    assert data[0]["status"] == "completed"

def test_list_sessions_requires_owner(test_client):
    assert test_client.get("/api/sessions").status_code == 422
    assert test_client.get("/api/sessions", params={"owner": " "}).status_code == 400

def test_get_session(test_client, completed_session):
    response = test_client.get(f"/api/sessions/{completed_session.id}")
    assert response.status_code == 200
    assert response.json()["destination_id"] == "thesis"

def test_missing_session(test_client):
    response = test_client.get("/api/sessions/unknown")
    assert response.status_code == 404
    assert "not found" in response.json()["detail"]

def test_session_events(test_client, completed_session):
    response = test_client.get(f"/api/sessions/{completed_session.id}/events")
    assert response.status_code == 200
    (event,) = response.json()
    assert event["signal_type"] == "idle"
    assert event["duration_ms"] == 20000.0

def test_session_statistics(test_client, completed_session):
    response = test_client.get(f"/api/sessions/{completed_session.id}/statistics")
    assert response.status_code == 200
    stats = response.json()
    assert stats["focus_quality"] == 80
    assert stats["most_common_type"] == "idle"
    assert stats["completion_percentage"] == 83
    assert stats["event_count"] == 1

def test_database_error(test_client, store):
    with patch.object(SQLiteStore, 'list_completed_sessions', side_effect=DatabaseError("Test error")):
        response = test_client.get("/api/sessions", params={"owner": "owner"})
        assert response.status_code == 500
        assert "Test error" in response.json()["detail"]
