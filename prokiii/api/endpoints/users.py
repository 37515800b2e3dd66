from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from prokiii.api.dependencies import get_current_user, get_user_service
from prokiii.core.exceptions import ValidationError
from prokiii.models.user_model import UserModel
from prokiii.schemas import user_schemas
from prokiii.services.user_service import UserService

router = APIRouter()

def to_user_read(user: UserModel) -> user_schemas.UserRead:
    return user_schemas.UserRead(
        id=user.id,
        email=user.email,
        prokiii_id=user.prokiii_id,
        auth_provider=user.auth_provider,
        has_profile_image=bool(user.profile_image),
        created_at=user.created_at,
    )

@router.get("/me", response_model=user_schemas.UserRead)
async def read_users_me(current_user: UserModel = Depends(get_current_user)):
    return to_user_read(current_user)

@router.put("/me/prokiii-id", response_model=user_schemas.UserRead)
async def change_prokiii_id(
    change_in: user_schemas.ChangeProkiiiIdRequest,
    current_user: UserModel = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    try:
        user = await user_service.change_prokiii_id(current_user.id, change_in.prokiii_id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return to_user_read(user)

@router.put("/me/avatar", response_model=user_schemas.UserRead)
async def upload_avatar(
    image: UploadFile = File(...),
    current_user: UserModel = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    image_data = await image.read()
    try:
        user = await user_service.upload_profile_image(current_user.id, image_data)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return to_user_read(user)

@router.get("/me/avatar")
async def get_avatar(
    current_user: UserModel = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    image_data = await user_service.fetch_profile_image(current_user.id)
    if image_data is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No profile image uploaded")
    return Response(content=image_data, media_type="image/jpeg")
