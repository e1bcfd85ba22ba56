"""
Event lookup, joining, expiry checks and organizer event management
"""

import logging
import secrets
import string
from datetime import datetime
from typing import Dict, List, Optional

from hooked.core.exceptions import (
    EventInactiveError,
    EventNotFoundError,
    HookedError,
    RecordNotFoundError,
    StoreError,
)
from hooked.schemas.event import EventCreate, EventUpdate, JoinResult
from hooked.schemas.records import EventProfileRecord, EventRecord
from hooked.services.notification_service import notification_registry
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext
from hooked.utils.clock import as_naive_utc, utcnow

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6

# Everything that belongs to an event and goes away with it
DEPENDENT_KINDS = ("EventProfile", "Like", "Message", "ContactShare", "EventFeedback")


class EventService:
    """Service for event lifecycle operations"""

    def __init__(self, store: RecordStore):
        self.store = store

    # -------- lookups --------

    def get_event(self, event_id: str) -> Optional[EventRecord]:
        data = self.store.get("Event", event_id)
        return EventRecord.from_store(data) if data else None

    def get_by_code(self, code: str) -> Optional[EventRecord]:
        events = self.store.filter("Event", {"code": code.strip().upper()})
        return EventRecord.from_store(events[0]) if events else None

    def list_events(self) -> List[EventRecord]:
        return [EventRecord.from_store(e) for e in self.store.filter("Event", {}, order_by="-created_at")]

    # -------- attendee flows --------

    def join(self, code: str, ctx: SessionContext, now: Optional[datetime] = None) -> JoinResult:
        """Validate an event code and start (or resume) a session for it"""
        now = as_naive_utc(now) or utcnow()
        event = self.get_by_code(code)
        if event is None:
            raise EventNotFoundError("Invalid event code.")

        if not event.is_configured:
            raise EventInactiveError("not_configured")
        if now < event.starts_at:
            raise EventInactiveError("not_started")
        if now >= event.expires_at:
            raise EventInactiveError("ended")

        ctx.start(event.id, event.code)

        resume = False
        session_id = ctx.current_session_id()
        if session_id:
            try:
                profiles = self.store.filter("EventProfile", {"session_id": session_id, "event_id": event.id})
                resume = len(profiles) > 0
            except StoreError as e:
                # Fall through to profile creation
                logger.warning(f"Could not check existing profile for {session_id}: {e}")

        logger.info(f"Join for event {event.code}: resume={resume}")
        return JoinResult(
            event_id=event.id,
            event_code=event.code,
            event_name=event.name,
            expires_at=event.expires_at,
            resume=resume,
            session_id=session_id if resume else None,
            show_guide=not ctx.has_seen_guide(event.id),
        )

    def check_active(self, ctx: SessionContext, now: Optional[datetime] = None) -> bool:
        """Return False, after clearing the context, when its event is gone or over.

        A False result means the caller should go back to the home/join flow.
        """
        if not ctx.is_active():
            return False
        now = as_naive_utc(now) or utcnow()
        try:
            event = self.get_event(ctx.current_event_id())
        except StoreError as e:
            logger.error(f"Error checking event status: {e}")
            ctx.clear()
            return False

        if event is not None and event.is_active(now):
            return True

        ctx.clear()
        return False

    def feedback_due(self, ctx: SessionContext, now: Optional[datetime] = None) -> Optional[EventRecord]:
        """The last event the context took part in, if it ended without feedback"""
        event_id, session_id = ctx.last_event()
        if not event_id or not session_id or ctx.feedback_given(event_id):
            return None
        event = self.get_event(event_id)
        if event is None or not event.has_expired(now):
            return None
        return event

    def get_profile(self, event_id: str, session_id: str) -> Optional[EventProfileRecord]:
        profiles = self.store.filter("EventProfile", {"session_id": session_id, "event_id": event_id})
        return EventProfileRecord.from_store(profiles[0]) if profiles else None

    # -------- organizer flows --------

    def _generate_code(self) -> str:
        code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        while self.get_by_code(code):
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
        return code

    def create_event(self, data: EventCreate) -> EventRecord:
        if data.code:
            code = data.code.strip().upper()
            if self.get_by_code(code):
                raise HookedError(f"Event code {code} is already in use")
        else:
            code = self._generate_code()

        record = EventRecord(
            code=code,
            name=data.name,
            location=data.location,
            description=data.description,
            starts_at=data.starts_at,
            expires_at=data.expires_at,
        )
        created = EventRecord.from_store(self.store.create("Event", record.to_fields()))
        logger.info(f"Created event {created.code} ({created.id})")
        return created

    def update_event(self, event_id: str, data: EventUpdate) -> EventRecord:
        event = self.get_event(event_id)
        if event is None:
            raise EventNotFoundError("Event not found")

        changes = data.model_dump(exclude_unset=True)
        merged = EventRecord(**{**event.model_dump(), **changes})
        if merged.is_configured and merged.expires_at <= merged.starts_at:
            raise HookedError("End date must be after the start date.")

        fields = {key: getattr(merged, key) for key in changes}
        return EventRecord.from_store(self.store.update("Event", event_id, fields))

    def delete_event(self, event_id: str) -> Dict[str, int]:
        """Delete an event and every record scoped to it"""
        if self.get_event(event_id) is None:
            raise EventNotFoundError("Event not found")

        removed: Dict[str, int] = {}
        for kind in DEPENDENT_KINDS:
            records = self.store.filter(kind, {"event_id": event_id})
            for record in records:
                try:
                    self.store.delete(kind, record["id"])
                except RecordNotFoundError:
                    continue
            removed[kind] = len(records)

        self.store.delete("Event", event_id)
        notification_registry.forget_event(event_id)
        logger.info(f"Deleted event {event_id} with dependents {removed}")
        return removed
