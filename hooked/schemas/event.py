"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

class EventCreate(BaseModel):
    """Schema for creating an event"""
    name: str = Field(min_length=1)
    location: str = ""
    description: Optional[str] = None
    code: Optional[str] = None
    starts_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def _window_order(self):
        if self.expires_at <= self.starts_at:
            raise ValueError("expires_at must be after starts_at")
        return self

class EventUpdate(BaseModel):
    """Schema for updating an event"""
    name: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

class JoinRequest(BaseModel):
    """Join an event by its code"""
    code: str = Field(min_length=1)

class ScanRequest(BaseModel):
    """Raw text read from a QR code"""
    text: str

class JoinResult(BaseModel):
    """Outcome of a successful join"""
    event_id: str
    event_code: str
    event_name: str
    expires_at: datetime
    resume: bool
    session_id: Optional[str] = None
    show_guide: bool = False
