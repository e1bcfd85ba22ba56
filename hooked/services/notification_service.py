"""
Match and message notification polling.

Each tick looks for (a) mutual likes the current session has not been told
about yet and (b) unread messages addressed to it, and produces at most one
toast of each kind. Toasts already produced in this process are remembered
in memory so the same record is not announced twice; the memory is lost on
restart.
"""

import asyncio
import inspect
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Set, Tuple

from hooked.core.config import settings
from hooked.core.exceptions import StoreError
from hooked.schemas.notification import MatchNotification, MessageNotification, NotificationTick
from hooked.schemas.records import EventProfileRecord, LikeRecord, MessageRecord
from hooked.services.chat_service import match_id
from hooked.services.polling import PeriodicTask
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext

logger = logging.getLogger(__name__)


class NotificationPoller:
    """Polls the record store on behalf of one session"""

    def __init__(self, store: RecordStore, ctx: SessionContext, interval: Optional[float] = None):
        self.store = store
        self.ctx = ctx
        self.interval = interval or settings.NOTIFICATION_POLL_SECONDS
        self.seen_match_ids: Set[str] = set()
        self.seen_message_ids: Set[str] = set()
        self._task: Optional[PeriodicTask] = None

    def _profile(self, event_id: str, session_id: str) -> Optional[EventProfileRecord]:
        rows = self.store.filter("EventProfile", {"session_id": session_id, "event_id": event_id})
        return EventProfileRecord.from_store(rows[0]) if rows else None

    def check_matches(self, tick: Optional[NotificationTick] = None) -> Optional[MatchNotification]:
        event_id, session_id = self.ctx.require()
        outgoing = self.store.filter("Like", {"liker_session_id": session_id, "event_id": event_id, "is_mutual": True})
        incoming = self.store.filter("Like", {"liked_session_id": session_id, "event_id": event_id, "is_mutual": True})

        unseen = [
            like for like in (LikeRecord.from_store(row) for row in outgoing + incoming)
            if not like.is_notified_for(session_id)
        ]
        if tick is not None:
            tick.has_unseen_matches = bool(unseen)

        candidate = next((like for like in unseen if like.id not in self.seen_match_ids), None)
        if candidate is None:
            return None

        other = candidate.other_party(session_id)
        profile = self._profile(event_id, other)
        if profile is None:
            return None

        self.seen_match_ids.add(candidate.id)
        # Displaying the toast is what marks this side as notified; the toast
        # still goes out when the flag update fails
        try:
            self.store.update("Like", candidate.id, {candidate.notified_field_for(session_id): True})
        except StoreError as e:
            logger.error(f"Error marking like {candidate.id} as notified: {e}")
        return MatchNotification(
            like_id=candidate.id,
            session_id=other,
            profile_id=profile.id,
            name=profile.first_name,
        )

    def check_messages(self, tick: Optional[NotificationTick] = None) -> Optional[MessageNotification]:
        event_id, session_id = self.ctx.require()
        rows = self.store.filter("Message", {
            "receiver_session_id": session_id,
            "event_id": event_id,
            "is_read": False,
        })
        if tick is not None:
            tick.has_unread_messages = bool(rows)
        if not rows:
            return None

        latest = max((MessageRecord.from_store(row) for row in rows), key=lambda m: m.created_at)
        if latest.id in self.seen_message_ids:
            return None

        sender = self._profile(event_id, latest.sender_session_id)
        if sender is None:
            return None

        # Reading only happens when the chat is opened
        self.seen_message_ids.add(latest.id)
        return MessageNotification(
            message_id=latest.id,
            match_id=latest.match_id or match_id(session_id, latest.sender_session_id),
            sender_session_id=latest.sender_session_id,
            name=sender.first_name,
        )

    def tick(self) -> NotificationTick:
        """One poll; the two checks fail independently"""
        result = NotificationTick()
        if not self.ctx.is_active():
            self.seen_match_ids.clear()
            self.seen_message_ids.clear()
            return result

        try:
            result.match = self.check_matches(result)
        except StoreError as e:
            logger.error(f"Error checking match notifications: {e}")
        try:
            result.message = self.check_messages(result)
        except StoreError as e:
            logger.error(f"Error checking message notifications: {e}")
        return result

    # -------- scheduling --------

    def start(self, on_tick: Optional[Callable[[NotificationTick], Any]] = None) -> PeriodicTask:
        """Poll every ``interval`` seconds; ``on_tick`` (plain or async) gets ticks that produced a toast"""
        async def run():
            result = await asyncio.to_thread(self.tick)
            if on_tick is not None and (result.match or result.message):
                outcome = on_tick(result)
                if inspect.isawaitable(outcome):
                    await outcome
            return result

        if self._task is None:
            self._task = PeriodicTask(self.interval, run, name="notification-poller")
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


class NotificationRegistry:
    """One poller per (event, session) so seen-sets last across API requests.

    Pollers not asked for within ``idle_seconds`` are dropped on the next
    lookup, as are all pollers of an event that is deleted.
    """

    def __init__(self, idle_seconds: Optional[float] = None):
        self.idle_seconds = idle_seconds or settings.NOTIFICATION_POLLER_IDLE_SECONDS
        self._pollers: Dict[Tuple[str, str], NotificationPoller] = {}
        self._last_used: Dict[Tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def poller_for(self, store: RecordStore, ctx: SessionContext, now: Optional[float] = None) -> NotificationPoller:
        key = ctx.require()
        now = time.monotonic() if now is None else now
        with self._lock:
            self._prune(now)
            poller = self._pollers.get(key)
            if poller is None:
                poller = NotificationPoller(store, ctx)
                self._pollers[key] = poller
            self._last_used[key] = now
        # Stores are bound to a request's DB session; use the current one
        poller.store = store
        poller.ctx = ctx
        return poller

    def _prune(self, now: float) -> None:
        stale = [key for key, used in self._last_used.items() if now - used > self.idle_seconds]
        for key in stale:
            self._pollers.pop(key, None)
            self._last_used.pop(key, None)
        if stale:
            logger.info(f"Dropped {len(stale)} idle notification pollers")

    def forget(self, event_id: str, session_id: str) -> None:
        with self._lock:
            self._pollers.pop((event_id, session_id), None)
            self._last_used.pop((event_id, session_id), None)

    def forget_event(self, event_id: str) -> int:
        """Drop every poller of an event; returns how many went"""
        with self._lock:
            keys = [key for key in self._pollers if key[0] == event_id]
            for key in keys:
                self._pollers.pop(key, None)
                self._last_used.pop(key, None)
        return len(keys)

    def __len__(self) -> int:
        return len(self._pollers)


notification_registry = NotificationRegistry()
