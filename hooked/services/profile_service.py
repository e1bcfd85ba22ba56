"""
Event profile management and discovery filtering
"""

import asyncio
import inspect
import logging
import random
import string
import time
from typing import Any, Callable, List, Optional, Set

from hooked.core.config import settings
from hooked.core.exceptions import EventNotFoundError, HookedError, ProfileNotFoundError, StoreError
from hooked.schemas.profile import DiscoveryFilters, DiscoveryResult, ProfileCreate, ProfileUpdate
from hooked.schemas.records import EventProfileRecord
from hooked.services.polling import PeriodicTask
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext

logger = logging.getLogger(__name__)

PROFILE_COLORS = [
    "#ff6b6b", "#4ecdc4", "#45b7d1", "#96ceb4", "#feca57",
    "#ff9ff3", "#54a0ff", "#5f27cd", "#00d2d3", "#ff9f43",
]

_BASE36 = string.digits + string.ascii_lowercase


def new_session_id() -> str:
    """session_<epoch ms>_<9 random base36 chars>"""
    suffix = "".join(random.choice(_BASE36) for _ in range(9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class ProfileService:
    """Service for event-scoped attendee profiles"""

    def __init__(self, store: RecordStore):
        self.store = store

    def _find(self, event_id: str, session_id: str) -> Optional[EventProfileRecord]:
        profiles = self.store.filter("EventProfile", {"event_id": event_id, "session_id": session_id})
        return EventProfileRecord.from_store(profiles[0]) if profiles else None

    def get_own_profile(self, ctx: SessionContext) -> EventProfileRecord:
        event_id, session_id = ctx.require()
        profile = self._find(event_id, session_id)
        if profile is None:
            raise ProfileNotFoundError("Profile not found for this session")
        return profile

    def create_profile(self, ctx: SessionContext, data: ProfileCreate) -> EventProfileRecord:
        """Create the caller's profile for the current event, unless one exists"""
        event_id = ctx.require_event()
        if not data.consent:
            raise HookedError("You must consent to join.")
        if self.store.get("Event", event_id) is None:
            raise EventNotFoundError("Event not found")

        session_id = ctx.current_session_id()
        if session_id:
            existing = self._find(event_id, session_id)
            if existing is not None:
                return existing

        record = EventProfileRecord(
            event_id=event_id,
            session_id=new_session_id(),
            first_name=data.first_name,
            email=data.email,
            age=data.age,
            gender_identity=data.gender_identity,
            interested_in=data.interested_in,
            interests=data.interests,
            profile_photo_url=data.profile_photo_url,
            profile_color=random.choice(PROFILE_COLORS),
        )
        created = EventProfileRecord.from_store(self.store.create("EventProfile", record.to_fields()))
        ctx.set_session(created.session_id, created.profile_color, created.profile_photo_url)
        logger.info(f"Created profile {created.session_id} for event {event_id}")
        return created

    def update_profile(self, ctx: SessionContext, data: ProfileUpdate) -> EventProfileRecord:
        profile = self.get_own_profile(ctx)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return profile
        # Validate the merged profile before writing
        EventProfileRecord(**{**profile.model_dump(), **changes})
        return EventProfileRecord.from_store(self.store.update("EventProfile", profile.id, changes))

    def set_visibility(self, ctx: SessionContext, visible: bool) -> EventProfileRecord:
        profile = self.get_own_profile(ctx)
        return EventProfileRecord.from_store(
            self.store.update("EventProfile", profile.id, {"is_visible": visible})
        )

    def leave_event(self, ctx: SessionContext) -> None:
        """Delete the caller's profile for this event and drop the session"""
        profile = self.get_own_profile(ctx)
        self.store.delete("EventProfile", profile.id)
        ctx.clear()
        logger.info(f"Session {profile.session_id} left event {profile.event_id}")

    def get_profiles(self, event_id: str, session_ids: List[str]) -> List[EventProfileRecord]:
        if not session_ids:
            return []
        profiles = self.store.filter("EventProfile", {"event_id": event_id, "session_id": list(session_ids)})
        return [EventProfileRecord.from_store(p) for p in profiles]

    def liked_session_ids(self, event_id: str, session_id: str) -> Set[str]:
        likes = self.store.filter("Like", {"liker_session_id": session_id, "event_id": event_id})
        return {like["liked_session_id"] for like in likes}

    def discover(self, ctx: SessionContext, filters: Optional[DiscoveryFilters] = None) -> DiscoveryResult:
        """Visible attendees the caller could match with"""
        event_id, session_id = ctx.require()
        filters = filters or DiscoveryFilters()

        visible = [
            EventProfileRecord.from_store(p)
            for p in self.store.filter("EventProfile", {"event_id": event_id, "is_visible": True})
        ]
        me = next((p for p in visible if p.session_id == session_id), None)
        if me is None:
            me = self._find(event_id, session_id)
        if me is None:
            raise ProfileNotFoundError("Current user profile not found for session")

        others = [p for p in visible if p.session_id != session_id]
        candidates = apply_filters(me, others, filters)

        return DiscoveryResult(
            profiles=candidates,
            liked_session_ids=sorted(self.liked_session_ids(event_id, session_id)),
        )


def apply_filters(
    me: EventProfileRecord,
    others: List[EventProfileRecord],
    filters: DiscoveryFilters,
) -> List[EventProfileRecord]:
    """Mutual gender interest first, then age range, gender and shared interests"""
    wanted_interests = set(filters.interests)
    result = []
    for other in others:
        if not (me.is_interested_in(other) and other.is_interested_in(me)):
            continue
        if not (filters.age_min <= other.age <= filters.age_max):
            continue
        if filters.gender != "all" and other.gender_identity != filters.gender:
            continue
        if wanted_interests and not wanted_interests.intersection(other.interests):
            continue
        result.append(other)
    return result


class DiscoveryFeed:
    """The caller's discovery list, refreshed on a timer while visible"""

    def __init__(self, service: ProfileService, ctx: SessionContext, interval: Optional[float] = None):
        self.service = service
        self.ctx = ctx
        self.interval = interval or settings.DISCOVERY_POLL_SECONDS
        self.filters = DiscoveryFilters()
        self.result: Optional[DiscoveryResult] = None
        self._task: Optional[PeriodicTask] = None

    def refresh(self) -> Optional[DiscoveryResult]:
        try:
            self.result = self.service.discover(self.ctx, self.filters)
        except StoreError as e:
            # Keep showing the previous list
            logger.error(f"Error refreshing discovery: {e}")
        return self.result

    def set_filters(self, filters: DiscoveryFilters) -> Optional[DiscoveryResult]:
        self.filters = filters
        return self.refresh()

    def start(self, on_refresh: Optional[Callable[[DiscoveryResult], Any]] = None) -> PeriodicTask:
        async def run():
            result = await asyncio.to_thread(self.refresh)
            if on_refresh is not None and result is not None:
                outcome = on_refresh(result)
                if inspect.isawaitable(outcome):
                    await outcome

        if self._task is None:
            self._task = PeriodicTask(self.interval, run, name="discovery-feed")
        self._task.start()
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.stop()

    def set_visible(self, visible: bool) -> None:
        if self._task is None:
            return
        if visible:
            self._task.resume()
        else:
            self._task.pause()
