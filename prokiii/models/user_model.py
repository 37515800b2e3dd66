from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, EmailStr

class AuthProvider(str, Enum):
    EMAIL = "email"
    GOOGLE = "google"

class UserModel(BaseModel):
    id: str # Store-assigned for email users, the Google subject for Google users
    email: EmailStr
    prokiii_id: str # Display identifier, also the member id used in team rosters
    auth_provider: AuthProvider
    password_hash: Optional[str] = None # Only set for email sign-ups
    profile_image: Optional[str] = None # Base64 image data, or a picture URL for Google users
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True
        use_enum_values = True
