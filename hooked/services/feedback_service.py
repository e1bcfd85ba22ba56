"""
Post-event feedback collection
"""

import logging
from datetime import datetime
from typing import Optional

from hooked.core.exceptions import EventNotFoundError, FeedbackError, SessionRequiredError
from hooked.schemas.feedback import FeedbackCreate
from hooked.schemas.records import EventFeedbackRecord, EventRecord
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext

logger = logging.getLogger(__name__)


class FeedbackService:
    def __init__(self, store: RecordStore):
        self.store = store

    def submit(self, ctx: SessionContext, data: FeedbackCreate, now: Optional[datetime] = None) -> EventFeedbackRecord:
        """Record feedback for the caller's last event once it has ended"""
        event_id, session_id = ctx.last_event()
        if not event_id or not session_id:
            raise SessionRequiredError("No event to give feedback for")
        if ctx.feedback_given(event_id):
            raise FeedbackError("Feedback already submitted for this event")

        row = self.store.get("Event", event_id)
        if row is None:
            raise EventNotFoundError("Event not found")
        if not EventRecord.from_store(row).has_expired(now):
            raise FeedbackError("Feedback opens once the event has ended")

        if self.store.filter("EventFeedback", {"event_id": event_id, "session_id": session_id}):
            ctx.mark_feedback_given(event_id)
            raise FeedbackError("Feedback already submitted for this event")

        record = EventFeedbackRecord(event_id=event_id, session_id=session_id, **data.model_dump())
        created = EventFeedbackRecord.from_store(self.store.create("EventFeedback", record.to_fields()))
        ctx.mark_feedback_given(event_id)
        logger.info(f"Feedback received for event {event_id}")
        return created
