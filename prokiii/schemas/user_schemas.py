from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime

class SignupRequest(BaseModel):
    email: str
    prokiii_id: str
    password: str

class UserRead(BaseModel):
    id: str
    email: EmailStr
    prokiii_id: str
    auth_provider: str
    has_profile_image: bool = False
    created_at: Optional[datetime] = None

class ChangeProkiiiIdRequest(BaseModel):
    prokiii_id: str
