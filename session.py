from typing import Any, Dict, Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import auth
import database
import settings
from errors import Unauthorized

security = HTTPBearer(auto_error=False)

PRIVATE_FIELDS = {"password": 0, "refreshToken": 0}


def cookie_options() -> Dict[str, Any]:
    if settings.IS_PRODUCTION:
        return {"httponly": True, "secure": True, "samesite": "none"}
    return {"httponly": True, "secure": False, "samesite": "lax"}


def set_auth_cookies(response: Response, tokens: Dict[str, str]) -> None:
    opts = cookie_options()
    response.set_cookie("accessToken", tokens["accessToken"], **opts)
    response.set_cookie("refreshToken", tokens["refreshToken"], **opts)


def clear_auth_cookies(response: Response) -> None:
    opts = cookie_options()
    response.delete_cookie("accessToken", **opts)
    response.delete_cookie("refreshToken", **opts)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    # cookie wins over the Authorization header
    token = request.cookies.get("accessToken")
    if token:
        return token
    if credentials is not None and credentials.scheme.lower() == "bearer":
        return credentials.credentials
    return None


def load_principal(principal_id: Any) -> Optional[Dict]:
    if not database.is_obj_id(principal_id):
        return None
    return database.collection("user").find_one({"_id": database.to_obj_id(principal_id)}, PRIVATE_FIELDS)


async def get_current_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict:
    """Resolve the caller or fail with 401. Never refreshes silently."""
    token = extract_token(request, credentials)
    if not token:
        raise Unauthorized("Unauthorized: No token provided")
    principal_id = auth.validate_access(token)
    principal = load_principal(principal_id)
    if not principal:
        raise Unauthorized("Unauthorized: User not found")
    return principal
