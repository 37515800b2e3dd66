from fastapi import Depends, HTTPException, Request, status

from prokiii.core import security
from prokiii.models.user_model import UserModel
from prokiii.services.event_service import EventService
from prokiii.services.roster_service import RosterService
from prokiii.services.user_service import UserService

# Services are built once per app in create_app() and kept on app.state, so the
# roster service's per-event locks are shared by every request.

def get_roster_service(request: Request) -> RosterService:
    return request.app.state.roster_service

def get_event_service(request: Request) -> EventService:
    return request.app.state.event_service

def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service

async def get_current_user(
    token: str = Depends(security.oauth2_scheme),
    user_service: UserService = Depends(get_user_service),
) -> UserModel:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    user_id = security.decode_access_token(token)
    if user_id is None:
        raise credentials_exception
    user = await user_service.get_user(user_id)
    if user is None:
        raise credentials_exception
    return user
