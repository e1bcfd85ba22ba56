"""
Chat between two matched sessions.

Both parties derive the same conversation id from their two session ids, so
no lookup is needed to find a conversation. Messages form an append-only
log: they are never deleted, and ``is_read`` only ever goes from False to
True, set by the receiver.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Callable, List, Optional

from hooked.core.config import settings
from hooked.core.exceptions import NotMatchedError, StoreError
from hooked.schemas.chat import ContactShareStatus
from hooked.schemas.records import ContactShareRecord, MessageRecord
from hooked.services.polling import PeriodicTask
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext
from hooked.utils.clock import utcnow

logger = logging.getLogger(__name__)

TEMP_PREFIX = "temp_"


def match_id(session_a: str, session_b: str) -> str:
    """Order-independent conversation id for a pair of sessions"""
    return "_".join(sorted([session_a, session_b]))


def load_messages(store: RecordStore, event_id: str, conversation_id: str) -> List[MessageRecord]:
    rows = store.filter("Message", {"event_id": event_id, "match_id": conversation_id}, order_by="created_at")
    return [MessageRecord.from_store(row) for row in rows]


def mark_read(store: RecordStore, event_id: str, conversation_id: str, receiver_session_id: str) -> int:
    """Flip every unread message addressed to the receiver; failures are not retried"""
    unread = store.filter("Message", {
        "match_id": conversation_id,
        "receiver_session_id": receiver_session_id,
        "is_read": False,
        "event_id": event_id,
    })
    flipped = 0
    for row in unread:
        try:
            store.update("Message", row["id"], {"is_read": True})
            flipped += 1
        except StoreError as e:
            logger.error(f"Error marking message {row['id']} as read: {e}")
    return flipped


class ChatChannel:
    """One open conversation as seen by the current session.

    Keeps the loaded messages and the compose buffer; a failed send takes
    the optimistic message back out and puts the text back in the buffer.
    """

    def __init__(self, store: RecordStore, ctx: SessionContext, other_session_id: str, interval: Optional[float] = None):
        self.store = store
        self.ctx = ctx
        self.other_session_id = other_session_id
        self.interval = interval or settings.CHAT_POLL_SECONDS
        self.messages: List[MessageRecord] = []
        self.compose = ""
        self.has_shared_contact = False
        self.received_contact: Optional[ContactShareRecord] = None
        self._task: Optional[PeriodicTask] = None

    @property
    def match_id(self) -> str:
        _, session_id = self.ctx.require()
        return match_id(session_id, self.other_session_id)

    def send(self, content: Optional[str] = None) -> Optional[MessageRecord]:
        event_id, session_id = self.ctx.require()
        text = (content if content is not None else self.compose).strip()
        if not text:
            return None
        self.compose = ""

        temp = MessageRecord(
            id=f"{TEMP_PREFIX}{int(time.time() * 1000)}",
            event_id=event_id,
            match_id=self.match_id,
            sender_session_id=session_id,
            receiver_session_id=self.other_session_id,
            content=text,
            created_at=utcnow(),
        )
        self.messages.append(temp)

        try:
            created = MessageRecord.from_store(self.store.create("Message", temp.to_fields()))
        except StoreError:
            self.messages = [m for m in self.messages if not (m.id or "").startswith(TEMP_PREFIX)]
            self.compose = text
            logger.warning(f"Send failed in {self.match_id}; restored compose text")
            raise

        self.messages = [created if m is temp else m for m in self.messages]
        return created

    def load_messages(self) -> List[MessageRecord]:
        event_id, _ = self.ctx.require()
        self.messages = load_messages(self.store, event_id, self.match_id)
        self.mark_read()
        return self.messages

    def mark_read(self) -> int:
        event_id, session_id = self.ctx.require()
        try:
            return mark_read(self.store, event_id, self.match_id, session_id)
        except StoreError as e:
            logger.error(f"Error marking messages as read: {e}")
            return 0

    def unread_count(self, session_id: Optional[str] = None) -> int:
        event_id, own = self.ctx.require()
        rows = self.store.filter("Message", {
            "match_id": self.match_id,
            "receiver_session_id": session_id or own,
            "is_read": False,
            "event_id": event_id,
        })
        return len(rows)

    def share_contact(self, full_name: str, phone_number: str) -> ContactShareRecord:
        event_id, session_id = self.ctx.require()
        share = ChatService(self.store).share_contact(event_id, session_id, self.other_session_id, full_name, phone_number)
        self.has_shared_contact = True
        return share

    def load_contact_shares(self) -> ContactShareStatus:
        event_id, session_id = self.ctx.require()
        status = ChatService(self.store).contact_shares(event_id, session_id, self.other_session_id)
        self.has_shared_contact = status.has_shared
        self.received_contact = status.received
        return status

    def refresh(self) -> None:
        self.load_messages()
        try:
            self.load_contact_shares()
        except StoreError as e:
            logger.error(f"Error loading contact shares: {e}")

    def start(self, on_refresh: Optional[Callable[["ChatChannel"], Any]] = None) -> PeriodicTask:
        async def run():
            await asyncio.to_thread(self.refresh)
            if on_refresh is not None:
                outcome = on_refresh(self)
                if inspect.isawaitable(outcome):
                    await outcome

        if self._task is None:
            self._task = PeriodicTask(self.interval, run, name=f"chat-{self.other_session_id}")
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


class ChatService:
    """Stateless chat operations for the HTTP API"""

    def __init__(self, store: RecordStore):
        self.store = store

    def require_match(self, event_id: str, session_id: str, other_session_id: str) -> None:
        mine = self.store.filter("Like", {
            "liker_session_id": session_id,
            "liked_session_id": other_session_id,
            "event_id": event_id,
            "is_mutual": True,
        })
        theirs = self.store.filter("Like", {
            "liker_session_id": other_session_id,
            "liked_session_id": session_id,
            "event_id": event_id,
            "is_mutual": True,
        })
        if not mine and not theirs:
            raise NotMatchedError("You can only chat with your matches")

    def send(self, ctx: SessionContext, other_session_id: str, content: str) -> MessageRecord:
        event_id, session_id = ctx.require()
        self.require_match(event_id, session_id, other_session_id)
        record = MessageRecord(
            event_id=event_id,
            match_id=match_id(session_id, other_session_id),
            sender_session_id=session_id,
            receiver_session_id=other_session_id,
            content=content,
        )
        return MessageRecord.from_store(self.store.create("Message", record.to_fields()))

    def load_messages(self, ctx: SessionContext, other_session_id: str) -> List[MessageRecord]:
        """Load the conversation and mark what was addressed to the caller as read"""
        event_id, session_id = ctx.require()
        conversation_id = match_id(session_id, other_session_id)
        messages = load_messages(self.store, event_id, conversation_id)
        mark_read(self.store, event_id, conversation_id, session_id)
        return messages

    def mark_read(self, ctx: SessionContext, other_session_id: str) -> int:
        event_id, session_id = ctx.require()
        return mark_read(self.store, event_id, match_id(session_id, other_session_id), session_id)

    def share_contact(
        self,
        event_id: str,
        session_id: str,
        other_session_id: str,
        full_name: str,
        phone_number: str,
    ) -> ContactShareRecord:
        """Share contact details once per match; a repeat returns the first share"""
        conversation_id = match_id(session_id, other_session_id)
        existing = self.store.filter("ContactShare", {
            "event_id": event_id,
            "match_id": conversation_id,
            "sharer_session_id": session_id,
        })
        if existing:
            return ContactShareRecord.from_store(existing[0])
        record = ContactShareRecord(
            event_id=event_id,
            match_id=conversation_id,
            sharer_session_id=session_id,
            recipient_session_id=other_session_id,
            full_name=full_name,
            phone_number=phone_number,
        )
        return ContactShareRecord.from_store(self.store.create("ContactShare", record.to_fields()))

    def contact_shares(self, event_id: str, session_id: str, other_session_id: str) -> ContactShareStatus:
        conversation_id = match_id(session_id, other_session_id)
        mine = self.store.filter("ContactShare", {
            "event_id": event_id,
            "match_id": conversation_id,
            "sharer_session_id": session_id,
        })
        theirs = self.store.filter("ContactShare", {
            "event_id": event_id,
            "match_id": conversation_id,
            "sharer_session_id": other_session_id,
            "recipient_session_id": session_id,
        })
        return ContactShareStatus(
            has_shared=bool(mine),
            received=ContactShareRecord.from_store(theirs[0]) if theirs else None,
        )
