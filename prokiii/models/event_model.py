from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

MAX_PRIZES = 3

class EventModel(BaseModel):
    id: str
    title: str = Field(min_length=1)
    organizer: str = Field(min_length=1)
    creator_id: str # References UserModel.id, never changes after creation
    location: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    prizes: List[str] = Field(default_factory=list) # 1st, 2nd, 3rd place labels in order
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    @field_validator('prizes')
    @classmethod
    def at_most_three_prizes(cls, v):
        if len(v) > MAX_PRIZES:
            raise ValueError(f'An event has at most {MAX_PRIZES} prizes')
        return v
