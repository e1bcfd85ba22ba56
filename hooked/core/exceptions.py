"""
Domain exceptions raised by the services and translated at the API boundary
"""

from typing import Optional


class HookedError(Exception):
    """Base class for all domain errors"""

    error_code = "error"
    status_code = 400


class SessionRequiredError(HookedError):
    """The caller has no active event or session; send them back to the join flow"""

    error_code = "session_required"
    status_code = 401

    def __init__(self, message: str = "Join an event to continue", redirect: str = "/join"):
        super().__init__(message)
        self.redirect = redirect


class EventNotFoundError(HookedError):
    error_code = "event_not_found"
    status_code = 404


class EventInactiveError(HookedError):
    """The event exists but cannot be joined right now"""

    status_code = 409

    MESSAGES = {
        "not_configured": "This event is not configured correctly. Please contact the organizer.",
        "not_started": "This event hasn't started yet. Try again soon!",
        "ended": "This event has ended.",
    }

    def __init__(self, reason: str):
        super().__init__(self.MESSAGES.get(reason, "This event is not active."))
        self.reason = reason

    @property
    def error_code(self) -> str:
        return self.reason


class ProfileNotFoundError(HookedError):
    error_code = "profile_not_found"
    status_code = 404


class DuplicateLikeError(HookedError):
    """The target is already in the caller's liked-set"""

    error_code = "already_liked"
    status_code = 409


class NotMatchedError(HookedError):
    error_code = "not_matched"
    status_code = 403


class FeedbackError(HookedError):
    error_code = "feedback_rejected"
    status_code = 409


class StoreError(HookedError):
    """A record-store call failed; the caller should try again later"""

    error_code = "store_unavailable"
    status_code = 503

    def __init__(self, message: str, kind: Optional[str] = None):
        super().__init__(message)
        self.kind = kind


class RecordNotFoundError(StoreError):
    error_code = "record_not_found"
    status_code = 404
