"""
Like/match reconciliation.

A like is a one-directional record. A match exists once both directions
exist in the same event; whichever side likes second discovers the
reciprocal record and flips both to mutual. The two updates are not atomic:
if one of them fails the pair is left half-flipped and nothing repairs it.
"""

import logging
from typing import Iterable, List, Optional, Set

from hooked.core.exceptions import DuplicateLikeError, StoreError
from hooked.schemas.match import LikeResult, MatchSummary
from hooked.schemas.records import EventProfileRecord, LikeRecord
from hooked.services.chat_service import match_id
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext

logger = logging.getLogger(__name__)


class LikeMatchEngine:
    """Creates likes and confirms mutual matches"""

    def __init__(self, store: RecordStore):
        self.store = store

    def like(self, liker_session_id: str, liked_session_id: str, event_id: str) -> LikeResult:
        # Validates liker != liked before touching the store
        record = LikeRecord(
            event_id=event_id,
            liker_session_id=liker_session_id,
            liked_session_id=liked_session_id,
        )
        created = LikeRecord.from_store(self.store.create("Like", record.to_fields()))

        reciprocal_rows = self.store.filter("Like", {
            "liker_session_id": liked_session_id,
            "liked_session_id": liker_session_id,
            "event_id": event_id,
        })
        if not reciprocal_rows:
            return LikeResult(mutual=False, like=created)

        reciprocal = LikeRecord.from_store(reciprocal_rows[0])
        try:
            created = LikeRecord.from_store(self.store.update("Like", created.id, {
                "is_mutual": True,
                "liker_notified_of_match": True,
            }))
            reciprocal = LikeRecord.from_store(self.store.update("Like", reciprocal.id, {
                "is_mutual": True,
                "liked_notified_of_match": True,
            }))
        except StoreError:
            logger.error(
                f"Mutual flip incomplete for likes {created.id}/{reciprocal.id} "
                f"in event {event_id}; records may disagree on is_mutual"
            )
            raise

        logger.info(f"Match confirmed between {liker_session_id} and {liked_session_id} in event {event_id}")
        return LikeResult(mutual=True, like=created, reciprocal=reciprocal)


class LikeSession:
    """The caller's side of liking: an in-memory liked-set guarding duplicate likes.

    The store has no uniqueness constraint on likes, so this set is the only
    thing that keeps one session from liking the same target twice.
    """

    def __init__(self, engine: LikeMatchEngine, ctx: SessionContext):
        self.engine = engine
        self.ctx = ctx
        self.liked: Set[str] = set()

    def load_likes(self) -> Set[str]:
        event_id, session_id = self.ctx.require()
        rows = self.engine.store.filter("Like", {"liker_session_id": session_id, "event_id": event_id})
        self.liked = {row["liked_session_id"] for row in rows}
        return self.liked

    def has_liked(self, session_id: str) -> bool:
        return session_id in self.liked

    def like(self, liked_session_id: str) -> LikeResult:
        event_id, session_id = self.ctx.require()
        if liked_session_id in self.liked:
            raise DuplicateLikeError(f"Already liked {liked_session_id}")

        # Optimistic: the target counts as liked until the store says otherwise
        self.liked.add(liked_session_id)
        try:
            return self.engine.like(session_id, liked_session_id, event_id)
        except StoreError:
            self.liked.discard(liked_session_id)
            logger.warning(f"Rolled back like {session_id} -> {liked_session_id}")
            raise
        except ValueError:
            self.liked.discard(liked_session_id)
            raise


class MatchService:
    """Service for listing matches and tracking match notifications"""

    def __init__(self, store: RecordStore):
        self.store = store

    def mutual_likes(self, event_id: str, session_id: str) -> List[LikeRecord]:
        outgoing = self.store.filter("Like", {"liker_session_id": session_id, "event_id": event_id, "is_mutual": True})
        incoming = self.store.filter("Like", {"liked_session_id": session_id, "event_id": event_id, "is_mutual": True})
        return [LikeRecord.from_store(row) for row in outgoing + incoming]

    def matched_session_ids(self, event_id: str, session_id: str) -> Set[str]:
        return {like.other_party(session_id) for like in self.mutual_likes(event_id, session_id)}

    def is_matched(self, event_id: str, session_id: str, other_session_id: str) -> bool:
        return other_session_id in self.matched_session_ids(event_id, session_id)

    def unread_count(self, event_id: str, session_id: str, other_session_id: str) -> int:
        unread = self.store.filter("Message", {
            "match_id": match_id(session_id, other_session_id),
            "receiver_session_id": session_id,
            "is_read": False,
            "event_id": event_id,
        })
        return len(unread)

    def list_matches(self, ctx: SessionContext, mark_notified: bool = True) -> List[MatchSummary]:
        """Confirmed matches with unread counts; viewing them counts as being notified"""
        event_id, session_id = ctx.require()
        likes = self.mutual_likes(event_id, session_id)
        others = sorted({like.other_party(session_id) for like in likes})
        if not others:
            return []

        rows = self.store.filter("EventProfile", {"session_id": others, "event_id": event_id})
        profiles = [EventProfileRecord.from_store(row) for row in rows]

        matches = [
            MatchSummary(
                match_id=match_id(session_id, profile.session_id),
                profile=profile,
                unread_count=self.unread_count(event_id, session_id, profile.session_id),
            )
            for profile in profiles
        ]

        if mark_notified and profiles:
            self.mark_matches_notified(ctx, [p.session_id for p in profiles], likes=likes)
        return matches

    def mark_matches_notified(
        self,
        ctx: SessionContext,
        session_ids: Iterable[str],
        likes: Optional[List[LikeRecord]] = None,
    ) -> int:
        """Set the caller's notified flag on every mutual like with ``session_ids``"""
        event_id, session_id = ctx.require()
        targets = set(session_ids)
        if likes is None:
            likes = self.mutual_likes(event_id, session_id)

        updated = 0
        for like in likes:
            if like.other_party(session_id) not in targets or like.is_notified_for(session_id):
                continue
            try:
                self.store.update("Like", like.id, {like.notified_field_for(session_id): True})
                updated += 1
            except StoreError as e:
                logger.error(f"Error updating notification status of like {like.id}: {e}")
        return updated
