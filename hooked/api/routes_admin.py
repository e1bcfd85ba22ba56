"""
Admin API routes - requires authentication
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from hooked.api.deps import get_store
from hooked.core.exceptions import EventNotFoundError
from hooked.schemas.event import EventCreate, EventUpdate
from hooked.services.event_service import EventService
from hooked.services.qr_service import QRService
from hooked.services.repositories import RecordStore
from hooked.utils.security import verify_admin_token
from hooked.utils.responses import success_response

router = APIRouter(dependencies=[Depends(verify_admin_token)])

def event_payload(event) -> dict:
    data = event.model_dump()
    data["join_url"] = QRService.get_join_url(event.code)
    data["qr_url"] = f"/events/{event.code}/qr.png"
    return data

@router.post("/events")
def create_event(
    event_data: EventCreate,
    store: RecordStore = Depends(get_store)
):
    """Create a new event; a code is generated unless one is given"""
    event = EventService(store).create_event(event_data)
    return success_response(
        message="Event created successfully",
        data=event_payload(event),
        status_code=201
    )

@router.get("/events")
def list_events(store: RecordStore = Depends(get_store)):
    """List events, newest first"""
    events = EventService(store).list_events()
    return success_response(
        message=f"Found {len(events)} events",
        data=[event_payload(event) for event in events]
    )

@router.get("/events/{event_id}")
def get_event(
    event_id: str,
    store: RecordStore = Depends(get_store)
):
    """Get event details with attendee count"""
    event = EventService(store).get_event(event_id)
    if not event:
        raise EventNotFoundError("Event not found")

    data = event_payload(event)
    data["attendee_count"] = len(store.filter("EventProfile", {"event_id": event_id}))
    return success_response(message="Event details retrieved", data=data)

@router.patch("/events/{event_id}")
def update_event(
    event_id: str,
    event_data: EventUpdate,
    store: RecordStore = Depends(get_store)
):
    event = EventService(store).update_event(event_id, event_data)
    return success_response(message="Event updated successfully", data=event_payload(event))

@router.delete("/events/{event_id}")
def delete_event(
    event_id: str,
    store: RecordStore = Depends(get_store)
):
    """Delete an event together with its profiles, likes, messages, shares and feedback"""
    removed = EventService(store).delete_event(event_id)
    return success_response(message="Event deleted", data={"removed": removed})

@router.get("/events/{event_id}/qr.png")
def get_event_qr(
    event_id: str,
    store: RecordStore = Depends(get_store)
):
    """QR code for printing at the venue"""
    event = EventService(store).get_event(event_id)
    if not event:
        raise EventNotFoundError("Event not found")
    return Response(content=QRService.generate_event_qr(event.code), media_type="image/png")
