"""
Event profile and discovery schemas
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from hooked.schemas.records import EventProfileRecord, GenderIdentity, InterestedIn

class ProfileCreate(BaseModel):
    """Profile details collected on the consent screen"""
    first_name: str = Field(min_length=1, max_length=100)
    email: Optional[str] = None
    age: int = Field(ge=18, le=120)
    gender_identity: GenderIdentity
    interested_in: InterestedIn
    interests: List[str] = Field(default_factory=list, max_length=3)
    profile_photo_url: str = Field(min_length=1)
    consent: bool

class ProfileUpdate(BaseModel):
    """Fields an attendee may edit on their own profile"""
    bio: Optional[str] = None
    interests: Optional[List[str]] = Field(default=None, max_length=3)
    height: Optional[str] = None
    profile_photo_url: Optional[str] = None

class VisibilityUpdate(BaseModel):
    is_visible: bool

class DiscoveryFilters(BaseModel):
    """Filters applied on top of the mutual-interest check"""
    age_min: int = 18
    age_max: int = 99
    gender: str = "all"
    interests: List[str] = Field(default_factory=list)

class DiscoveryResult(BaseModel):
    profiles: List[EventProfileRecord]
    liked_session_ids: List[str]
