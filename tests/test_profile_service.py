"""
Tests for event profiles, discovery filtering and the session context
"""

import re
import pytest
from datetime import timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hooked.core.db import Base
from hooked.core.exceptions import HookedError, ProfileNotFoundError, SessionRequiredError, StoreError
from hooked.schemas.event import EventCreate
from hooked.schemas.profile import DiscoveryFilters, ProfileCreate, ProfileUpdate
from hooked.services.event_service import EventService
from hooked.services.match_service import LikeMatchEngine
from hooked.services.profile_service import PROFILE_COLORS, DiscoveryFeed, ProfileService, new_session_id
from hooked.services.repositories import SqlRecordStore
from hooked.services.session_context import (
    JsonFileKeyValueStore,
    MemoryKeyValueStore,
    SessionContext,
)
from hooked.utils.clock import utcnow

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_profiles.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

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
def store(db_session):
    return SqlRecordStore(db_session)

@pytest.fixture
def profiles(store):
    return ProfileService(store)

@pytest.fixture
def event(store):
    now = utcnow()
    return EventService(store).create_event(EventCreate(
        name="Board Game Night",
        starts_at=now - timedelta(hours=1),
        expires_at=now + timedelta(hours=4)
    ))

def profile_form(name, gender, interested_in, age=30, interests=None, consent=True):
    return ProfileCreate(
        first_name=name,
        age=age,
        gender_identity=gender,
        interested_in=interested_in,
        interests=interests or [],
        profile_photo_url=f"https://img.example.com/{name}.jpg",
        consent=consent
    )

def join_as(profiles, event, *args, **kwargs):
    ctx = SessionContext(MemoryKeyValueStore())
    ctx.start(event.id, event.code)
    profiles.create_profile(ctx, profile_form(*args, **kwargs))
    return ctx

# -------- profiles --------

def test_new_session_id_format():
    assert re.fullmatch(r"session_\d{13}_[0-9a-z]{9}", new_session_id())

def test_create_profile_stores_session(profiles, event):
    ctx = SessionContext(MemoryKeyValueStore())
    ctx.start(event.id, event.code)

    profile = profiles.create_profile(ctx, profile_form("Ana", "woman", "men", interests=["Music", "Travel"]))

    assert ctx.current_session_id() == profile.session_id
    assert profile.profile_color in PROFILE_COLORS
    assert profile.is_visible is True
    assert profile.interests == ["Music", "Travel"]
    assert profiles.get_own_profile(ctx).id == profile.id

def test_create_profile_is_idempotent_per_session(store, profiles, event):
    ctx = join_as(profiles, event, "Ana", "woman", "men")
    again = profiles.create_profile(ctx, profile_form("Ana", "woman", "men"))

    assert again.session_id == ctx.current_session_id()
    assert len(store.filter("EventProfile", {"event_id": event.id})) == 1

def test_create_profile_requires_consent(profiles, event):
    ctx = SessionContext(MemoryKeyValueStore())
    ctx.start(event.id, event.code)
    with pytest.raises(HookedError):
        profiles.create_profile(ctx, profile_form("Ana", "woman", "men", consent=False))

def test_create_profile_requires_event(profiles):
    with pytest.raises(SessionRequiredError):
        profiles.create_profile(SessionContext(MemoryKeyValueStore()), profile_form("Ana", "woman", "men"))

def test_profile_limits():
    with pytest.raises(ValueError):
        profile_form("Teen", "man", "women", age=17)
    with pytest.raises(ValueError):
        profile_form("Ana", "woman", "men", interests=["a", "b", "c", "d"])
    with pytest.raises(ValueError):
        ProfileUpdate(interests=["a", "b", "c", "d"])

def test_update_profile(profiles, event):
    ctx = join_as(profiles, event, "Ana", "woman", "men")
    updated = profiles.update_profile(ctx, ProfileUpdate(bio="Loves Catan", height="170cm"))

    assert updated.bio == "Loves Catan"
    assert updated.height == "170cm"
    assert updated.first_name == "Ana"

def test_visibility_and_leave(store, profiles, event):
    ctx = join_as(profiles, event, "Ana", "woman", "men")
    session_id = ctx.current_session_id()

    assert profiles.set_visibility(ctx, False).is_visible is False

    profiles.leave_event(ctx)
    assert ctx.is_active() is False
    assert ctx.last_event() == (event.id, session_id)
    assert store.filter("EventProfile", {"event_id": event.id}) == []

# -------- discovery --------

@pytest.fixture
def crowd(profiles, event):
    """Ana looks for men; the rest are a mix"""
    ana = join_as(profiles, event, "Ana", "woman", "men", age=28, interests=["Music"])
    join_as(profiles, event, "Ben", "man", "women", age=31, interests=["Music", "Hiking"])
    join_as(profiles, event, "Carl", "man", "men", age=33)
    join_as(profiles, event, "Dev", "man", "everyone", age=45, interests=["Cooking"])
    join_as(profiles, event, "Eve", "woman", "men", age=26)
    hidden = join_as(profiles, event, "Finn", "man", "women", age=29)
    profiles.set_visibility(hidden, False)
    return ana

def names(result):
    return sorted(p.first_name for p in result.profiles)

def test_discovery_requires_mutual_interest(profiles, crowd):
    """Carl is not interested in women and Eve is not a man; Finn is hidden"""
    assert names(profiles.discover(crowd)) == ["Ben", "Dev"]

def test_discovery_age_range(profiles, crowd):
    result = profiles.discover(crowd, DiscoveryFilters(age_min=18, age_max=40))
    assert names(result) == ["Ben"]

def test_discovery_shared_interests(profiles, crowd):
    result = profiles.discover(crowd, DiscoveryFilters(interests=["Cooking", "Chess"]))
    assert names(result) == ["Dev"]

def test_discovery_gender_filter(profiles, event):
    sky = join_as(profiles, event, "Sky", "non-binary", "everyone")
    join_as(profiles, event, "Ben", "man", "everyone")
    join_as(profiles, event, "Ana", "woman", "everyone")
    join_as(profiles, event, "Rae", "non-binary", "non-binary")

    assert names(profiles.discover(sky)) == ["Ana", "Ben", "Rae"]
    assert names(profiles.discover(sky, DiscoveryFilters(gender="woman"))) == ["Ana"]

def test_discovery_reports_liked_sessions(store, profiles, crowd):
    ben = next(p for p in profiles.discover(crowd).profiles if p.first_name == "Ben")
    LikeMatchEngine(store).like(crowd.current_session_id(), ben.session_id, crowd.current_event_id())

    result = profiles.discover(crowd)
    assert result.liked_session_ids == [ben.session_id]
    assert "Ben" in names(result)

def test_discovery_without_own_profile(profiles, event):
    ctx = SessionContext.from_ids(event.id, "session_ghost")
    with pytest.raises(ProfileNotFoundError):
        profiles.discover(ctx)

def test_hidden_caller_can_still_discover(profiles, crowd):
    profiles.set_visibility(crowd, False)
    assert names(profiles.discover(crowd)) == ["Ben", "Dev"]

def test_discovery_feed_keeps_last_result_on_failure(profiles, crowd):
    feed = DiscoveryFeed(profiles, crowd)
    first = feed.set_filters(DiscoveryFilters(age_max=40))
    assert names(first) == ["Ben"]

    class BrokenStore:
        def filter(self, kind, criteria, order_by=None):
            raise StoreError("offline", kind=kind)

    feed.service = ProfileService(BrokenStore())
    assert feed.refresh() is first

# -------- session context --------

def test_memory_store_drops_empty_values():
    ctx = SessionContext.from_ids("event_1", "")
    assert ctx.current_event_id() == "event_1"
    assert ctx.current_session_id() is None
    with pytest.raises(SessionRequiredError):
        ctx.require()

def test_require_returns_both_ids():
    assert SessionContext.from_ids("event_1", "session_1").require() == ("event_1", "session_1")

def test_json_file_context_survives_restart(tmp_path):
    path = str(tmp_path / "session.json")
    ctx = SessionContext.local(path)
    ctx.start("event_1", "PARTY1")
    ctx.set_session("session_1", "#ff6b6b", "https://img.example.com/me.jpg")
    ctx.mark_guide_seen("event_1")

    reopened = SessionContext(JsonFileKeyValueStore(path))
    assert reopened.require() == ("event_1", "session_1")
    assert reopened.current_event_code() == "PARTY1"
    assert reopened.has_seen_guide("event_1")

    reopened.clear()
    assert SessionContext.local(path).current_event_id() is None
    assert SessionContext.local(path).last_event() == ("event_1", "session_1")
    # Per-event flags outlive the session
    assert SessionContext.local(path).has_seen_guide("event_1")

def test_json_file_context_ignores_corrupt_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json")
    assert SessionContext.local(str(path)).current_event_id() is None
