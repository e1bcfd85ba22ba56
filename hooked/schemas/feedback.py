"""
Post-event feedback schemas
"""

from typing import Optional
from pydantic import BaseModel, Field

class FeedbackCreate(BaseModel):
    rating_profile_setup: int = Field(ge=1, le=5)
    rating_interests_helpful: int = Field(ge=1, le=5)
    rating_social_usefulness: int = Field(ge=1, le=5)
    met_match_in_person: bool
    open_to_other_event_types: bool
    match_experience_feedback: str = Field(min_length=1)
    general_feedback: Optional[str] = None
