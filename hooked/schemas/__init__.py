"""
Pydantic schemas package
"""

from .common import *
from .records import *
from .event import *
from .profile import *
from .match import *
from .chat import *
from .notification import *
from .feedback import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventRecord",
    "EventProfileRecord",
    "LikeRecord",
    "MessageRecord",
    "ContactShareRecord",
    "EventFeedbackRecord",
    "EventCreate",
    "EventUpdate",
    "JoinRequest",
    "JoinResult",
    "ScanRequest",
    "ProfileCreate",
    "ProfileUpdate",
    "VisibilityUpdate",
    "DiscoveryFilters",
    "DiscoveryResult",
    "LikeRequest",
    "LikeResult",
    "MatchSummary",
    "MessageCreate",
    "ContactShareCreate",
    "ContactShareStatus",
    "MatchNotification",
    "MessageNotification",
    "NotificationTick",
    "FeedbackCreate",
]
