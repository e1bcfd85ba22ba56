"""
Tagged record types for everything kept in the record store.

Each record validates its required fields on construction, so a malformed
Like or Message is rejected before any store call is made. Records are
converted to plain field dicts with ``to_fields()`` for ``create`` and back
with ``from_store()`` when read.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from hooked.utils.clock import as_naive_utc, utcnow

GenderIdentity = Literal["man", "woman", "non-binary"]
InterestedIn = Literal["men", "women", "non-binary", "everyone"]

# interested_in value -> gender_identity it admits
INTEREST_TO_GENDER = {
    "men": "man",
    "women": "woman",
    "non-binary": "non-binary",
}


class Record(BaseModel):
    """Base class for store records"""

    kind: ClassVar[str] = ""

    id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        from_attributes = True
        extra = "ignore"

    @field_validator("created_at", mode="after")
    @classmethod
    def _normalise_created_at(cls, value: datetime) -> datetime:
        return as_naive_utc(value)

    @classmethod
    def from_store(cls, data: Dict[str, Any]):
        return cls.model_validate(data)

    def to_fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id"})


class EventRecord(Record):
    kind: ClassVar[str] = "Event"

    code: str = Field(min_length=1, max_length=20)
    name: str = Field(min_length=1)
    location: str = ""
    description: Optional[str] = None
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("starts_at", "expires_at", mode="after")
    @classmethod
    def _normalise_window(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(value)

    @property
    def is_configured(self) -> bool:
        return self.starts_at is not None and self.expires_at is not None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        """True while now is inside [starts_at, expires_at)"""
        if not self.is_configured:
            return False
        now = as_naive_utc(now) or utcnow()
        return self.starts_at <= now < self.expires_at

    def has_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = as_naive_utc(now) or utcnow()
        return now >= self.expires_at


class EventProfileRecord(Record):
    kind: ClassVar[str] = "EventProfile"

    event_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    first_name: str = Field(min_length=1, max_length=100)
    email: Optional[str] = None
    age: int = Field(ge=18, le=120)
    gender_identity: GenderIdentity
    interested_in: InterestedIn
    interests: List[str] = Field(default_factory=list, max_length=3)
    profile_photo_url: Optional[str] = None
    profile_color: Optional[str] = None
    is_visible: bool = True
    bio: Optional[str] = None
    height: Optional[str] = None

    @field_validator("interests", mode="before")
    @classmethod
    def _none_interests(cls, value):
        return value or []

    def is_interested_in(self, other: "EventProfileRecord") -> bool:
        if self.interested_in == "everyone":
            return True
        return INTEREST_TO_GENDER.get(self.interested_in) == other.gender_identity


class LikeRecord(Record):
    kind: ClassVar[str] = "Like"

    event_id: str = Field(min_length=1)
    liker_session_id: str = Field(min_length=1)
    liked_session_id: str = Field(min_length=1)
    is_mutual: bool = False
    liker_notified_of_match: bool = False
    liked_notified_of_match: bool = False

    @model_validator(mode="after")
    def _not_self(self):
        if self.liker_session_id == self.liked_session_id:
            raise ValueError("a session cannot like itself")
        return self

    def other_party(self, session_id: str) -> str:
        if session_id == self.liker_session_id:
            return self.liked_session_id
        return self.liker_session_id

    def notified_field_for(self, session_id: str) -> str:
        """Name of the notified flag owned by ``session_id``"""
        if session_id == self.liker_session_id:
            return "liker_notified_of_match"
        if session_id == self.liked_session_id:
            return "liked_notified_of_match"
        raise ValueError(f"session {session_id} is not part of like {self.id}")

    def is_notified_for(self, session_id: str) -> bool:
        return bool(getattr(self, self.notified_field_for(session_id)))


class MessageRecord(Record):
    kind: ClassVar[str] = "Message"

    event_id: str = Field(min_length=1)
    match_id: str = Field(min_length=1)
    sender_session_id: str = Field(min_length=1)
    receiver_session_id: str = Field(min_length=1)
    content: str
    is_read: bool = False

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("message content cannot be empty")
        return value.strip()


class ContactShareRecord(Record):
    kind: ClassVar[str] = "ContactShare"

    event_id: str = Field(min_length=1)
    match_id: str = Field(min_length=1)
    sharer_session_id: str = Field(min_length=1)
    recipient_session_id: str = Field(min_length=1)
    full_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=3)


class EventFeedbackRecord(Record):
    kind: ClassVar[str] = "EventFeedback"

    event_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    rating_profile_setup: int = Field(ge=1, le=5)
    rating_interests_helpful: int = Field(ge=1, le=5)
    rating_social_usefulness: int = Field(ge=1, le=5)
    met_match_in_person: bool
    open_to_other_event_types: bool
    match_experience_feedback: str
    general_feedback: Optional[str] = None

    @field_validator("match_experience_feedback")
    @classmethod
    def _feedback_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("please share what we could improve")
        return value.strip()
