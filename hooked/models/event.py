"""
Event model
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime

from hooked.core.db import Base

def new_id() -> str:
    return uuid.uuid4().hex

class Event(Base):
    __tablename__ = "events"

    id = Column(String(32), primary_key=True, default=new_id)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), default="")
    description = Column(Text, nullable=True)
    starts_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
