"""
Tests for the HTTP and WebSocket API
"""

import pytest
from datetime import timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from starlette.websockets import WebSocketDisconnect

from hooked.core.config import settings
from hooked.core.db import Base, get_db
from hooked.models import Event
from hooked.services.notification_service import notification_registry
from hooked.utils.clock import utcnow
from hooked.utils.security import rate_limiter
from main import app

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN = {"Authorization": f"Bearer {settings.ADMIN_TOKEN}"}

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    rate_limiter.clear()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

def create_event(client, code="MIXER1", starts_delta=-1, ends_delta=3):
    now = utcnow()
    response = client.post("/admin/events", headers=ADMIN, json={
        "name": "Friday Mixer",
        "location": "Loft 12",
        "code": code,
        "starts_at": (now + timedelta(hours=starts_delta)).isoformat(),
        "expires_at": (now + timedelta(hours=ends_delta)).isoformat()
    })
    assert response.status_code == 201
    return response.json()["data"]

def join_and_create_profile(client, code, name, gender, interested_in):
    joined = client.post("/join", json={"code": code.lower()})
    assert joined.status_code == 200
    event_id = joined.json()["data"]["event_id"]

    response = client.post("/attendee/profile", headers={"X-Event-Id": event_id}, json={
        "first_name": name,
        "age": 30,
        "gender_identity": gender,
        "interested_in": interested_in,
        "interests": ["Music"],
        "profile_photo_url": f"https://img.example.com/{name}.jpg",
        "consent": True
    })
    assert response.status_code == 201
    session_id = response.json()["data"]["session_id"]
    return {"X-Event-Id": event_id, "X-Session-Id": session_id}

@pytest.fixture
def event(client):
    return create_event(client)

@pytest.fixture
def alice(client, event):
    return join_and_create_profile(client, event["code"], "Alice", "woman", "men")

@pytest.fixture
def bob(client, event):
    return join_and_create_profile(client, event["code"], "Bob", "man", "women")

def like(client, headers, other):
    return client.post("/attendee/likes", headers=headers, json={"liked_session_id": other["X-Session-Id"]})

def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_admin_requires_token(client):
    assert client.get("/admin/events").status_code in (401, 403)
    wrong = client.get("/admin/events", headers={"Authorization": "Bearer wrong"})
    assert wrong.status_code == 401

def test_admin_event_crud(client, event):
    listed = client.get("/admin/events", headers=ADMIN).json()["data"]
    assert [e["code"] for e in listed] == ["MIXER1"]
    assert listed[0]["join_url"].endswith("/join?code=MIXER1")

    updated = client.patch(f"/admin/events/{event['id']}", headers=ADMIN, json={"location": "Roof"})
    assert updated.json()["data"]["location"] == "Roof"

    detail = client.get(f"/admin/events/{event['id']}", headers=ADMIN).json()["data"]
    assert detail["attendee_count"] == 0

    deleted = client.delete(f"/admin/events/{event['id']}", headers=ADMIN)
    assert deleted.status_code == 200
    missing = client.get(f"/admin/events/{event['id']}", headers=ADMIN)
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "event_not_found"

def test_join_unknown_code(client):
    response = client.post("/join", json={"code": "NOPE99"})
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "event_not_found"

def test_join_ended_event(client):
    create_event(client, code="OLD001", starts_delta=-5, ends_delta=-1)
    response = client.post("/join", json={"code": "OLD001"})
    assert response.status_code == 409
    assert response.json()["error_code"] == "ended"

def test_join_not_started(client):
    create_event(client, code="SOON01", starts_delta=2, ends_delta=5)
    response = client.post("/join", json={"code": "SOON01"})
    assert response.json()["error_code"] == "not_started"

def test_scan_and_qr(client, event):
    scanned = client.post("/scan", json={"text": "https://joinhooked.com/join?code=mixer1"})
    assert scanned.json()["data"] == {"code": "MIXER1"}

    bad = client.post("/scan", json={"text": "hi"})
    assert bad.status_code == 400
    assert bad.json()["error_code"] == "invalid_qr"

    qr = client.get("/events/mixer1/qr.png")
    assert qr.status_code == 200
    assert qr.headers["content-type"] == "image/png"
    assert qr.content.startswith(b"\x89PNG")

def test_attendee_routes_need_session(client):
    response = client.get("/attendee/matches")
    assert response.status_code == 401
    body = response.json()
    assert body["error_code"] == "session_required"
    assert body["details"] == {"redirect": "/join"}

def test_join_resumes_with_session_header(client, event, alice):
    response = client.post("/join", headers={"X-Session-Id": alice["X-Session-Id"]}, json={"code": event["code"]})
    data = response.json()["data"]
    assert data["resume"] is True
    assert data["session_id"] == alice["X-Session-Id"]

def test_like_match_and_chat_flow(client, event, alice, bob):
    discovered = client.get("/attendee/discovery", headers=alice).json()["data"]
    assert [p["first_name"] for p in discovered["profiles"]] == ["Bob"]

    first = like(client, alice, bob)
    assert first.status_code == 201
    assert first.json()["data"]["mutual"] is False

    second = like(client, bob, alice)
    assert second.json()["message"] == "It's a match!"
    assert second.json()["data"]["mutual"] is True

    duplicate = like(client, bob, alice)
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "already_liked"

    sent = client.post(f"/attendee/matches/{bob['X-Session-Id']}/messages", headers=alice, json={"content": "Hey Bob!"})
    assert sent.status_code == 201

    matches = client.get("/attendee/matches", headers=bob).json()["data"]
    assert len(matches) == 1
    assert matches[0]["profile"]["first_name"] == "Alice"
    assert matches[0]["unread_count"] == 1

    toast = client.get("/attendee/notifications", headers=bob).json()["data"]
    assert toast["has_unread_messages"] is True
    assert toast["message"]["name"] == "Alice"

    messages = client.get(f"/attendee/matches/{alice['X-Session-Id']}/messages", headers=bob).json()["data"]
    assert [m["content"] for m in messages] == ["Hey Bob!"]

    matches = client.get("/attendee/matches", headers=bob).json()["data"]
    assert matches[0]["unread_count"] == 0

def test_first_liker_is_notified_by_poll(client, event, alice, bob):
    like(client, alice, bob)
    like(client, bob, alice)

    tick = client.get("/attendee/notifications", headers=alice).json()["data"]
    assert tick["has_unseen_matches"] is True
    assert tick["match"]["name"] == "Bob"

def test_poll_after_event_ends_drops_poller(client, db_session, alice):
    tick = client.get("/attendee/notifications", headers=alice).json()["data"]
    assert tick["active"] is True
    assert len(notification_registry) >= 1

    event = db_session.query(Event).filter(Event.id == alice["X-Event-Id"]).first()
    event.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    ended = client.get("/attendee/notifications", headers=alice).json()["data"]
    assert ended["active"] is False
    assert ended["match"] is None
    assert notification_registry.forget_event(alice["X-Event-Id"]) == 0

def test_self_like_is_invalid(client, alice):
    response = like(client, alice, alice)
    assert response.status_code == 422
    assert response.json()["error_code"] == "validation_error"

def test_chat_requires_match(client, alice, bob):
    like(client, alice, bob)
    response = client.post(f"/attendee/matches/{bob['X-Session-Id']}/messages", headers=alice, json={"content": "Hi"})
    assert response.status_code == 403

def test_contact_share(client, alice, bob):
    like(client, alice, bob)
    like(client, bob, alice)

    shared = client.post(f"/attendee/matches/{bob['X-Session-Id']}/contact", headers=alice, json={
        "full_name": "Alice Moore",
        "phone_number": "+15550123"
    })
    assert shared.status_code == 201

    status = client.get(f"/attendee/matches/{alice['X-Session-Id']}/contact", headers=bob).json()["data"]
    assert status["has_shared"] is False
    assert status["received"]["phone_number"] == "+15550123"

def test_leave_event(client, alice):
    left = client.delete("/attendee/profile", headers=alice)
    assert left.status_code == 200
    assert client.get("/attendee/profile", headers=alice).status_code == 404

def test_status_reports_active_session(client, alice):
    data = client.get("/attendee/status", headers=alice).json()["data"]
    assert data["active"] is True
    assert data["feedback_event_id"] is None

def test_feedback_after_event_ends(client, db_session):
    ended = create_event(client, code="DONE01", starts_delta=-5, ends_delta=-1)
    headers = {"X-Event-Id": ended["id"], "X-Session-Id": "session_1"}

    status = client.get("/attendee/status", headers=headers).json()["data"]
    assert status["active"] is False
    assert status["feedback_event_id"] == ended["id"]

    form = {
        "rating_profile_setup": 5,
        "rating_interests_helpful": 4,
        "rating_social_usefulness": 4,
        "met_match_in_person": False,
        "open_to_other_event_types": True,
        "match_experience_feedback": "Great crowd"
    }
    assert client.post("/attendee/feedback", headers=headers, json=form).status_code == 201
    again = client.post("/attendee/feedback", headers=headers, json=form)
    assert again.status_code == 409

def test_websocket_rejects_inactive_session(client):
    ended = create_event(client, code="DONE02", starts_delta=-5, ends_delta=-1)
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/ws/events/{ended['id']}/sessions/session_1") as websocket:
            websocket.receive_json()

def test_websocket_pushes_match_toast(client, event, alice, bob):
    like(client, alice, bob)
    like(client, bob, alice)

    url = f"/ws/events/{alice['X-Event-Id']}/sessions/{alice['X-Session-Id']}"
    with client.websocket_connect(url) as websocket:
        received = {}
        for _ in range(2):
            message = websocket.receive_json()
            received[message["type"]] = message

        assert received["connection"]["session_id"] == alice["X-Session-Id"]
        assert received["notification"]["match"]["name"] == "Bob"

        websocket.send_json({"type": "ping", "timestamp": 123})
        assert websocket.receive_json() == {"type": "pong", "timestamp": 123}

        stats = client.get("/ws/stats").json()
        assert stats["total_connections"] == 1

def test_each_tab_gets_its_own_toast_once(client, event, alice, bob):
    """Two open tabs of one session do not receive each other's toasts"""
    like(client, alice, bob)
    like(client, bob, alice)

    url = f"/ws/events/{alice['X-Event-Id']}/sessions/{alice['X-Session-Id']}"
    with client.websocket_connect(url) as first_tab:
        first = {}
        for _ in range(2):
            message = first_tab.receive_json()
            first[message["type"]] = message

        with client.websocket_connect(url) as second_tab:
            second = {}
            for _ in range(2):
                message = second_tab.receive_json()
                second[message["type"]] = message
            assert second["notification"]["match"]["name"] == "Bob"

            # Anything pushed for the second tab would arrive before the pong
            first_tab.send_json({"type": "ping", "timestamp": 7})
            assert first_tab.receive_json() == {"type": "pong", "timestamp": 7}

        assert first["notification"]["match"]["like_id"] != second["notification"]["match"]["like_id"]
