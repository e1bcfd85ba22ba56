"""
Database models package
"""

from .event import Event
from .event_profile import EventProfile
from .like import Like
from .message import Message, ContactShare
from .feedback import EventFeedback

__all__ = ["Event", "EventProfile", "Like", "Message", "ContactShare", "EventFeedback"]
