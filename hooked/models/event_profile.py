"""
Event profile model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON

from hooked.core.db import Base
from hooked.models.event import new_id

class EventProfile(Base):
    # One profile per (event_id, session_id) is kept by the profile service
    __tablename__ = "event_profiles"

    id = Column(String(32), primary_key=True, default=new_id)
    event_id = Column(String(32), ForeignKey("events.id"), nullable=False, index=True)
    session_id = Column(String(64), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    age = Column(Integer, nullable=False)
    gender_identity = Column(String(20), nullable=False)
    interested_in = Column(String(20), nullable=False)
    interests = Column(JSON, default=list)
    profile_photo_url = Column(String(1024), nullable=True)
    profile_color = Column(String(16), nullable=True)
    is_visible = Column(Boolean, default=True)
    bio = Column(Text, nullable=True)
    height = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
