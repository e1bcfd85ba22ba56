"""
Post-event feedback model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime

from hooked.core.db import Base
from hooked.models.event import new_id

class EventFeedback(Base):
    __tablename__ = "event_feedback"

    id = Column(String(32), primary_key=True, default=new_id)
    event_id = Column(String(32), nullable=False, index=True)
    session_id = Column(String(64), nullable=False)
    rating_profile_setup = Column(Integer, nullable=False)
    rating_interests_helpful = Column(Integer, nullable=False)
    rating_social_usefulness = Column(Integer, nullable=False)
    met_match_in_person = Column(Boolean, nullable=False)
    open_to_other_event_types = Column(Boolean, nullable=False)
    match_experience_feedback = Column(Text, nullable=False)
    general_feedback = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
