"""
Like and match schemas
"""

from typing import Optional
from pydantic import BaseModel, Field

from hooked.schemas.records import EventProfileRecord, LikeRecord

class LikeRequest(BaseModel):
    liked_session_id: str = Field(min_length=1)

class LikeResult(BaseModel):
    """Result of a like; ``mutual`` is true when it completed a match"""
    mutual: bool
    like: LikeRecord
    reciprocal: Optional[LikeRecord] = None

class MatchSummary(BaseModel):
    """A confirmed match as seen by one side"""
    match_id: str
    profile: EventProfileRecord
    unread_count: int = 0
