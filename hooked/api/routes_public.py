"""
Public API routes - no session required
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from hooked.api.deps import get_store
from hooked.schemas.event import JoinRequest, ScanRequest
from hooked.services.event_service import EventService
from hooked.services.qr_service import QRService
from hooked.services.repositories import RecordStore
from hooked.services.session_context import SessionContext
from hooked.utils.responses import success_response, error_response
from hooked.utils.security import enforce_rate_limit, get_session_context

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.post("/join", dependencies=[Depends(enforce_rate_limit)])
def join_event(
    join_data: JoinRequest,
    store: RecordStore = Depends(get_store),
    ctx: SessionContext = Depends(get_session_context)
):
    """Validate an event code; tells the client whether to resume or create a profile"""
    result = EventService(store).join(join_data.code, ctx)
    return success_response(
        message="Welcome back!" if result.resume else "Event found. Create your profile to join.",
        data=result.model_dump()
    )

@router.post("/scan")
async def scan_code(scan_data: ScanRequest):
    """Turn scanned QR text into an event code"""
    code = QRService.parse_scanned_code(scan_data.text)
    if not code:
        return error_response(
            message="Invalid QR code format.",
            error_code="invalid_qr",
            status_code=400
        )
    return success_response(message="Event code read", data={"code": code})

@router.get("/events/{code}/qr.png")
def get_qr_code(
    code: str,
    store: RecordStore = Depends(get_store)
):
    """Get QR code image for an event's join link"""
    event = EventService(store).get_by_code(code)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")

    qr_bytes = QRService.generate_event_qr(event.code)

    return Response(
        content=qr_bytes,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=qr_{event.code}.png"}
    )
