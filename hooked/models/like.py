"""
Like model
"""

from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime

from hooked.core.db import Base
from hooked.models.event import new_id

class Like(Base):
    # No unique constraint on (event_id, liker, liked): duplicates are guarded client-side
    __tablename__ = "likes"

    id = Column(String(32), primary_key=True, default=new_id)
    event_id = Column(String(32), nullable=False, index=True)
    liker_session_id = Column(String(64), nullable=False, index=True)
    liked_session_id = Column(String(64), nullable=False, index=True)
    is_mutual = Column(Boolean, default=False)
    liker_notified_of_match = Column(Boolean, default=False)
    liked_notified_of_match = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
