import base64
import binascii
import logging
import random
import re
from typing import Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import ValidationError as PydanticValidationError

from prokiii.core import security
from prokiii.core.exceptions import NotFoundError, ProkiiiError, StoreError, ValidationError
from prokiii.models.user_model import AuthProvider, UserModel
from prokiii.store import USERS, DocumentStore, new_document_id

logger = logging.getLogger(__name__)

EMAIL_REGEX = re.compile(r"^[A-Z0-9a-z._%+-]+@[A-Z0-9a-z.-]+\.[A-Za-z]{2,}$")
PROKIII_ID_REGEX = re.compile(r"^[A-Za-z0-9]{6,12}$")
PASSWORD_REGEX = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)[A-Za-z\d@$!%*?&]{8,}$")

MAX_ID_ASSIGNMENT_ATTEMPTS = 50

def is_valid_email(email: str) -> bool:
    return bool(EMAIL_REGEX.match(email or ""))

def is_valid_prokiii_id(prokiii_id: str) -> bool:
    return bool(PROKIII_ID_REGEX.match(prokiii_id or ""))

def is_valid_password(password: str) -> bool:
    """At least 8 characters with a lowercase letter, an uppercase letter and a digit."""
    return bool(PASSWORD_REGEX.match(password or ""))

def generate_prokiii_id() -> str:
    return f"prokiii_{random.randint(10000, 99999)}"

def normalize_email(email: str) -> str:
    """
    Returns the address in the form it is stored and looked up in: the domain
    lowercased and internationalized parts normalized, as ``EmailStr`` does.
    """
    try:
        return validate_email(email or "", check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError("Invalid email address.") from e


class UserService:
    def __init__(self, store: DocumentStore):
        self.store = store

    @staticmethod
    def _to_user(document: Optional[dict]) -> Optional[UserModel]:
        if document is None:
            return None
        try:
            return UserModel(**document)
        except PydanticValidationError as e:
            raise StoreError(f"Malformed users document {document.get('id')}: {e}") from e

    async def get_user(self, user_id: str) -> Optional[UserModel]:
        return self._to_user(await self.store.find_one(USERS, {"id": user_id}))

    async def get_user_by_email(self, email: str) -> Optional[UserModel]:
        try:
            email = normalize_email(email)
        except ValidationError:
            return None
        return self._to_user(await self.store.find_one(USERS, {"email": email}))

    async def get_user_by_prokiii_id(self, prokiii_id: str) -> Optional[UserModel]:
        return self._to_user(await self.store.find_one(USERS, {"prokiii_id": prokiii_id}))

    async def _require_user(self, user_id: str) -> UserModel:
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found.")
        return user

    async def sign_up(self, email: str, prokiii_id: str, password: str) -> UserModel:
        if not is_valid_email(email):
            raise ValidationError("Invalid email address.")
        if not is_valid_prokiii_id(prokiii_id):
            raise ValidationError("Prokiii ID must be 6 to 12 letters or digits.")
        if not is_valid_password(password):
            raise ValidationError(
                "Password must be at least 8 characters and contain an uppercase letter, "
                "a lowercase letter and a digit."
            )
        email = normalize_email(email)

        if await self.get_user_by_email(email):
            raise ValidationError(f"User with email {email} already exists.")
        if await self.get_user_by_prokiii_id(prokiii_id):
            raise ValidationError(f"Prokiii ID {prokiii_id} is already taken.")

        try:
            user = UserModel(
                id=new_document_id(),
                email=email,
                prokiii_id=prokiii_id,
                auth_provider=AuthProvider.EMAIL,
                password_hash=security.get_password_hash(password),
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid sign-up details: {e}") from e
        await self.store.insert_one(USERS, user.model_dump(mode='json'))
        logger.info("User %s signed up as %s", user.id, prokiii_id)
        return user

    async def authenticate(self, email: str, password: str) -> Optional[UserModel]:
        user = await self.get_user_by_email(email)
        if not user or not user.password_hash:
            return None
        if not security.verify_password(password, user.password_hash):
            return None
        return user

    async def upsert_google_user(self, google_id: str, email: str, picture_url: Optional[str] = None) -> UserModel:
        """Refreshes a known Google account, or registers it with a freshly assigned Prokiii ID."""
        email = normalize_email(email)
        existing = await self.get_user(google_id)
        if existing:
            await self.store.update_one(
                USERS,
                {"id": google_id},
                {"$set": {"email": email, "profile_image": picture_url}},
            )
            return existing.model_copy(update={"email": email, "profile_image": picture_url})

        for _ in range(MAX_ID_ASSIGNMENT_ATTEMPTS):
            prokiii_id = generate_prokiii_id()
            if not await self.get_user_by_prokiii_id(prokiii_id):
                break
        else:
            raise ProkiiiError("Could not assign a free Prokiii ID.")

        try:
            user = UserModel(
                id=google_id,
                email=email,
                prokiii_id=prokiii_id,
                auth_provider=AuthProvider.GOOGLE,
                profile_image=picture_url,
            )
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid Google account details: {e}") from e
        await self.store.insert_one(USERS, user.model_dump(mode='json'))
        logger.info("Google user %s registered as %s", google_id, prokiii_id)
        return user

    async def change_prokiii_id(self, user_id: str, new_prokiii_id: str) -> UserModel:
        # Existing team rosters keep the old id; members are not renamed.
        user = await self._require_user(user_id)
        if not is_valid_prokiii_id(new_prokiii_id):
            raise ValidationError("Prokiii ID must be 6 to 12 letters or digits.")
        if new_prokiii_id == user.prokiii_id:
            return user
        if await self.get_user_by_prokiii_id(new_prokiii_id):
            raise ValidationError(f"Prokiii ID {new_prokiii_id} is already taken.")

        await self.store.update_one(USERS, {"id": user_id}, {"$set": {"prokiii_id": new_prokiii_id}})
        logger.info("User %s changed Prokiii ID from %s to %s", user_id, user.prokiii_id, new_prokiii_id)
        return user.model_copy(update={"prokiii_id": new_prokiii_id})

    async def upload_profile_image(self, user_id: str, image_data: bytes) -> UserModel:
        user = await self._require_user(user_id)
        if not image_data:
            raise ValidationError("Profile image cannot be empty.")
        encoded = base64.b64encode(image_data).decode("ascii")
        await self.store.update_one(USERS, {"id": user_id}, {"$set": {"profile_image": encoded}})
        return user.model_copy(update={"profile_image": encoded})

    async def fetch_profile_image(self, user_id: str) -> Optional[bytes]:
        """Returns uploaded image bytes; None when there is no image or only a remote picture URL."""
        user = await self._require_user(user_id)
        if not user.profile_image or user.profile_image.startswith(("http://", "https://")):
            return None
        try:
            return base64.b64decode(user.profile_image, validate=True)
        except binascii.Error as e:
            raise StoreError(f"Profile image of user {user_id} is not valid base64") from e
