"""
Chat message and contact share models
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, Boolean, DateTime

from hooked.core.db import Base
from hooked.models.event import new_id

class Message(Base):
    __tablename__ = "messages"

    id = Column(String(32), primary_key=True, default=new_id)
    event_id = Column(String(32), nullable=False, index=True)
    match_id = Column(String(140), nullable=False, index=True)
    sender_session_id = Column(String(64), nullable=False)
    receiver_session_id = Column(String(64), nullable=False, index=True)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

class ContactShare(Base):
    __tablename__ = "contact_shares"

    id = Column(String(32), primary_key=True, default=new_id)
    event_id = Column(String(32), nullable=False, index=True)
    match_id = Column(String(140), nullable=False, index=True)
    sharer_session_id = Column(String(64), nullable=False)
    recipient_session_id = Column(String(64), nullable=False)
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
