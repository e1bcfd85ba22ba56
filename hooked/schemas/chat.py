"""
Chat and contact share schemas
"""

from typing import Optional
from pydantic import BaseModel, Field

from hooked.schemas.records import ContactShareRecord

class MessageCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)

class ContactShareCreate(BaseModel):
    full_name: str = Field(min_length=1)
    phone_number: str = Field(min_length=3)

class ContactShareStatus(BaseModel):
    has_shared: bool
    received: Optional[ContactShareRecord] = None
