from typing import Dict, Optional
from fastapi.security import OAuth2PasswordBearer

# The UI forwards the token it received from the backend's /auth/login;
# the sync service never issues tokens itself.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

def build_auth_headers(token: Optional[str]) -> Dict[str, str]:
    """
    Headers sent on every backend call.
    The backend expects `Authorization: Bearer <token>` once a user is logged in.
    """
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers
