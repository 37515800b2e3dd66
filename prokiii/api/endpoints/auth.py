from fastapi import APIRouter, Depends, HTTPException, status

from prokiii.api.dependencies import get_user_service
from prokiii.core import security
from prokiii.core.exceptions import ValidationError
from prokiii.schemas import auth_schemas, user_schemas
from prokiii.services import auth_service
from prokiii.services.user_service import UserService
from prokiii.api.endpoints.users import to_user_read

router = APIRouter()

def _token_for(user_id: str) -> auth_schemas.Token:
    # The subject of the token is the user's store id, which never changes.
    access_token = security.create_access_token(data={"sub": user_id})
    return auth_schemas.Token(access_token=access_token, token_type="bearer")

@router.post("/signup", response_model=user_schemas.UserRead, status_code=status.HTTP_201_CREATED)
async def signup(
    signup_in: user_schemas.SignupRequest,
    user_service: UserService = Depends(get_user_service),
):
    try:
        user = await user_service.sign_up(signup_in.email, signup_in.prokiii_id, signup_in.password)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return to_user_read(user)

@router.post("/login", response_model=auth_schemas.Token)
async def login(
    login_in: auth_schemas.LoginRequest,
    user_service: UserService = Depends(get_user_service),
):
    user = await user_service.authenticate(login_in.email, login_in.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _token_for(user.id)

@router.post("/google", response_model=auth_schemas.Token)
async def login_with_google(
    request: auth_schemas.GoogleLoginRequest,
    user_service: UserService = Depends(get_user_service),
):
    try:
        idinfo = auth_service.verify_google_id_token(request.token)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        user = await user_service.upsert_google_user(
            google_id=idinfo["sub"],
            email=idinfo["email"],
            picture_url=idinfo.get("picture"),
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return _token_for(user.id)
