"""
Password hashing and the access/refresh token service.

Access tokens are short lived and carry enough identity to render a session
({sub, email, username, fullName}). Refresh tokens carry only the principal id
and are single-use: every issue overwrites the principal's stored refreshToken,
so presenting an older one is rejected by `rotate`.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

import database
import settings
from errors import Unauthorized, ValidationError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# bcrypt silently ignores everything past 72 bytes
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_BYTES = 72


def verify_password_policy(password: str) -> None:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes long")


def hash_password(password: str) -> str:
    verify_password_policy(password)
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    return pwd_context.verify(password, hashed)


def _encode(claims: Dict[str, Any], secret: str, expires_delta: timedelta) -> str:
    to_encode = claims.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, secret, algorithm=settings.ALGORITHM)


def create_access_token(principal: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    claims = {
        "sub": str(principal["_id"]),
        "email": principal.get("email"),
        "username": principal.get("username"),
        "fullName": principal.get("fullName"),
        "type": "access",
    }
    return _encode(claims, settings.ACCESS_TOKEN_SECRET, expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(principal_id: Any, expires_delta: Optional[timedelta] = None) -> str:
    claims = {"sub": str(principal_id), "type": "refresh"}
    return _encode(claims, settings.REFRESH_TOKEN_SECRET, expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def _decode(token: str, secret: str, token_type: str) -> str:
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise Unauthorized("Unauthorized: Invalid or expired token")
    principal_id = payload.get("sub")
    if principal_id is None or payload.get("type") != token_type:
        raise Unauthorized("Unauthorized: Invalid or expired token")
    return principal_id


def issue_pair(principal_id: Any, replaces: Optional[str] = None) -> Dict[str, str]:
    """Mint a new access/refresh pair and make the refresh token the only valid one.

    With `replaces`, the stored token is swapped only if it still equals that
    value, so two concurrent rotations of the same token cannot both succeed.
    """
    principal = database.collection("user").find_one({"_id": database.to_obj_id(principal_id)})
    if not principal:
        raise Unauthorized("Unauthorized: User not found")
    access_token = create_access_token(principal)
    refresh_token = create_refresh_token(principal["_id"])
    query = {"_id": principal["_id"]}
    if replaces is not None:
        query["refreshToken"] = replaces
    res = database.collection("user").update_one(
        query,
        {"$set": {"refreshToken": refresh_token, "updatedAt": database.now()}},
    )
    if res.matched_count == 0:
        raise Unauthorized("Unauthorized: Refresh token is expired or used")
    return {"accessToken": access_token, "refreshToken": refresh_token}


def validate_access(token: str) -> str:
    """Signature and expiry check only; returns the principal id."""
    if not token:
        raise Unauthorized("Unauthorized: No token provided")
    return _decode(token, settings.ACCESS_TOKEN_SECRET, "access")


def rotate(refresh_token: Optional[str]) -> Dict[str, str]:
    if not refresh_token:
        raise Unauthorized("Unauthorized: Refresh token is required")
    principal_id = _decode(refresh_token, settings.REFRESH_TOKEN_SECRET, "refresh")
    if not database.is_obj_id(principal_id):
        raise Unauthorized("Unauthorized: Invalid refresh token")
    principal = database.collection("user").find_one({"_id": database.to_obj_id(principal_id)})
    if not principal:
        raise Unauthorized("Unauthorized: Invalid refresh token")
    if refresh_token != principal.get("refreshToken"):
        logger.warning("Rejected stale or reused refresh token for principal %s", principal_id)
        raise Unauthorized("Unauthorized: Refresh token is expired or used")
    return issue_pair(principal["_id"], replaces=refresh_token)


def revoke(principal_id: Any) -> None:
    database.collection("user").update_one(
        {"_id": database.to_obj_id(principal_id)},
        {"$unset": {"refreshToken": ""}, "$set": {"updatedAt": database.now()}},
    )
