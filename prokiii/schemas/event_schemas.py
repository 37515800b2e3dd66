from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from prokiii.models.event_model import MAX_PRIZES

def _clean_prizes(prizes: Optional[List[str]]) -> Optional[List[str]]:
    if prizes is None:
        return None
    # Blank prize fields are simply not offered
    cleaned = [p.strip() for p in prizes if p and p.strip()]
    if len(cleaned) > MAX_PRIZES:
        raise ValueError(f"At most {MAX_PRIZES} prizes can be offered")
    return cleaned

class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, description="Title of the event")
    organizer: str = Field(..., min_length=1, description="Name of the organizer")
    location: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    prizes: List[str] = Field(default_factory=list, description="1st, 2nd and 3rd prize labels, in order")

    @field_validator('title', 'organizer')
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError('must not be blank')
        return v.strip()

    @field_validator('prizes')
    @classmethod
    def valid_prizes(cls, v):
        return _clean_prizes(v)

class EventUpdate(BaseModel):
    # Only the fields that are sent are changed; creator_id is not updatable.
    title: Optional[str] = Field(None, min_length=1)
    organizer: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    prizes: Optional[List[str]] = None

    @field_validator('prizes')
    @classmethod
    def valid_prizes(cls, v):
        return _clean_prizes(v)

    @field_validator('title', 'organizer')
    @classmethod
    def not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError('must not be blank')
        return v.strip() if v is not None else v
