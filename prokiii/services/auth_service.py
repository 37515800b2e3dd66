from typing import Any, Dict

from google.oauth2 import id_token
from google.auth.transport import requests as google_requests

from prokiii.core.config import settings
from prokiii.core.exceptions import ValidationError

def verify_google_id_token(token: str) -> Dict[str, Any]:
    """
    Verifies a Google ID token and returns its claims.

    Raises ValidationError if the token is invalid or lacks the subject or email claims.
    """
    try:
        idinfo = id_token.verify_oauth2_token(token, google_requests.Request(), settings.GOOGLE_CLIENT_ID)
    except ValueError as e:
        raise ValidationError(f"Invalid Google ID token: {e}") from e

    if not idinfo.get("sub") or not idinfo.get("email"):
        raise ValidationError("Email or Google ID missing from token payload")
    return idinfo
