"""
Notification schemas produced by the poller
"""

from typing import Optional
from pydantic import BaseModel

class MatchNotification(BaseModel):
    like_id: str
    session_id: str
    profile_id: str
    name: str

class MessageNotification(BaseModel):
    message_id: str
    match_id: str
    sender_session_id: str
    name: str

class NotificationTick(BaseModel):
    """Everything one poll produced; at most one toast of each kind"""
    has_unseen_matches: bool = False
    has_unread_messages: bool = False
    match: Optional[MatchNotification] = None
    message: Optional[MessageNotification] = None
