"""
Attendee API routes - require an event session (X-Event-Id / X-Session-Id headers)
"""

from typing import List
from fastapi import APIRouter, Depends, Query

from hooked.api.deps import get_store
from hooked.api.ws import websocket_manager
from hooked.schemas.chat import ContactShareCreate, MessageCreate
from hooked.schemas.feedback import FeedbackCreate
from hooked.schemas.match import LikeRequest
from hooked.schemas.notification import NotificationTick
from hooked.schemas.profile import DiscoveryFilters, ProfileCreate, ProfileUpdate, VisibilityUpdate
from hooked.services.chat_service import ChatService
from hooked.services.event_service import EventService
from hooked.services.feedback_service import FeedbackService
from hooked.services.match_service import LikeMatchEngine, LikeSession, MatchService
from hooked.services.notification_service import notification_registry
from hooked.services.profile_service import ProfileService
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext
from hooked.utils.responses import success_response
from hooked.utils.security import enforce_rate_limit, get_session_context

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

# -------- profile --------

@router.post("/profile")
def create_profile(
    profile_data: ProfileCreate,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Create the caller's profile for the event in X-Event-Id"""
    profile = ProfileService(store).create_profile(ctx, profile_data)
    return success_response(
        message="Profile created",
        data=profile.model_dump(),
        status_code=201
    )

@router.get("/profile")
def get_profile(
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    profile = ProfileService(store).get_own_profile(ctx)
    return success_response(message="Profile retrieved", data=profile.model_dump())

@router.patch("/profile")
def update_profile(
    profile_data: ProfileUpdate,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    profile = ProfileService(store).update_profile(ctx, profile_data)
    return success_response(message="Profile updated", data=profile.model_dump())

@router.post("/profile/visibility")
def set_visibility(
    visibility: VisibilityUpdate,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Show or hide the caller in other attendees' discovery"""
    profile = ProfileService(store).set_visibility(ctx, visibility.is_visible)
    return success_response(
        message="You are visible" if profile.is_visible else "You are hidden",
        data={"is_visible": profile.is_visible}
    )

@router.delete("/profile")
def leave_event(
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Leave the event: deletes the caller's profile"""
    event_id, session_id = ctx.require()
    ProfileService(store).leave_event(ctx)
    notification_registry.forget(event_id, session_id)
    return success_response(message="You have left the event", data={"redirect": "/"})

# -------- session status --------

@router.get("/status")
def session_status(
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Whether the session's event is still running, and any feedback owed"""
    service = EventService(store)
    event_id, session_id = ctx.current_event_id(), ctx.current_session_id()
    active = service.check_active(ctx)
    if not active and event_id and session_id:
        notification_registry.forget(event_id, session_id)

    feedback_event = service.feedback_due(ctx)
    return success_response(
        message="Session active" if active else "Session ended",
        data={
            "active": active,
            "redirect": None if active else "/",
            "feedback_event_id": feedback_event.id if feedback_event else None
        }
    )

# -------- discovery and likes --------

@router.get("/discovery")
def discovery(
    age_min: int = Query(18, ge=18),
    age_max: int = Query(99, le=120),
    gender: str = Query("all"),
    interests: List[str] = Query(default=[]),
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Visible attendees with mutual gender interest, narrowed by the filters"""
    filters = DiscoveryFilters(age_min=age_min, age_max=age_max, gender=gender, interests=interests)
    result = ProfileService(store).discover(ctx, filters)
    return success_response(
        message=f"Found {len(result.profiles)} profiles",
        data=result.model_dump()
    )

@router.post("/likes")
async def like_profile(
    like_data: LikeRequest,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Like another attendee; completes a match when they already liked back"""
    event_id, session_id = ctx.require()
    session = LikeSession(LikeMatchEngine(store), ctx)
    session.load_likes()
    result = session.like(like_data.liked_session_id)

    if result.mutual:
        for recipient, other in (
            (session_id, like_data.liked_session_id),
            (like_data.liked_session_id, session_id),
        ):
            await websocket_manager.send_to_session(event_id, recipient, {
                "type": "match",
                "event_id": event_id,
                "session_id": other
            })

    return success_response(
        message="It's a match!" if result.mutual else "Like sent",
        data=result.model_dump(),
        status_code=201
    )

@router.get("/matches")
def list_matches(
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Confirmed matches with unread counts"""
    matches = MatchService(store).list_matches(ctx)
    return success_response(
        message=f"{len(matches)} matches",
        data=[match.model_dump() for match in matches]
    )

# -------- chat --------

@router.get("/matches/{other_session_id}/messages")
def get_messages(
    other_session_id: str,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Open a conversation; messages addressed to the caller become read"""
    service = ChatService(store)
    event_id, session_id = ctx.require()
    service.require_match(event_id, session_id, other_session_id)
    messages = service.load_messages(ctx, other_session_id)
    return success_response(
        message="Messages retrieved",
        data=[message.model_dump() for message in messages]
    )

@router.post("/matches/{other_session_id}/messages")
async def send_message(
    other_session_id: str,
    message_data: MessageCreate,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    message = ChatService(store).send(ctx, other_session_id, message_data.content)
    await websocket_manager.send_to_session(message.event_id, other_session_id, {
        "type": "message",
        "match_id": message.match_id,
        "message_id": message.id,
        "sender_session_id": message.sender_session_id
    })
    return success_response(
        message="Message sent",
        data=message.model_dump(),
        status_code=201
    )

@router.post("/matches/{other_session_id}/read")
def mark_read(
    other_session_id: str,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    flipped = ChatService(store).mark_read(ctx, other_session_id)
    return success_response(message="Messages marked as read", data={"marked": flipped})

@router.get("/matches/{other_session_id}/contact")
def get_contact_shares(
    other_session_id: str,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Whether the caller has shared contact details, and what the match shared"""
    event_id, session_id = ctx.require()
    status = ChatService(store).contact_shares(event_id, session_id, other_session_id)
    return success_response(message="Contact share status", data=status.model_dump())

@router.post("/matches/{other_session_id}/contact")
def share_contact(
    other_session_id: str,
    contact_data: ContactShareCreate,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    service = ChatService(store)
    event_id, session_id = ctx.require()
    service.require_match(event_id, session_id, other_session_id)
    share = service.share_contact(
        event_id,
        session_id,
        other_session_id,
        contact_data.full_name,
        contact_data.phone_number
    )
    return success_response(message="Contact shared", data=share.model_dump(), status_code=201)

# -------- notifications and feedback --------

@router.get("/notifications")
def poll_notifications(
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """One notification poll for clients without a WebSocket"""
    event_id, session_id = ctx.require()
    if not EventService(store).check_active(ctx):
        notification_registry.forget(event_id, session_id)
        return success_response(
            message="Session ended",
            data={**NotificationTick().model_dump(), "active": False, "redirect": "/"}
        )
    tick = notification_registry.poller_for(store, ctx).tick()
    return success_response(message="Notifications checked", data={**tick.model_dump(), "active": True})

@router.post("/feedback")
def submit_feedback(
    feedback_data: FeedbackCreate,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Post-event feedback; accepted once per session after the event ends"""
    feedback = FeedbackService(store).submit(ctx, feedback_data)
    return success_response(message="Thanks for your feedback!", data=feedback.model_dump(), status_code=201)
