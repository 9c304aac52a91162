"""
Credential store: registration, login lookup, and self-service profile edits.
"""

import logging
from typing import Any, Dict, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import auth
import database
import media
from errors import Conflict, NotFound, Unauthorized, ValidationError
from policies import is_company
from schemas import User as UserSchema
from session import PRIVATE_FIELDS

logger = logging.getLogger(__name__)

SELF_REGISTER_ROLES = ("user", "company")
COMPANY_FIELDS = ("companyRegistrationNo", "gstNo")
PROFILE_FIELDS = (
    "fullName", "email", "mobile", "address", "country", "dob",
    "weight", "height", "gender", "isVeg", "companyRegistrationNo", "gstNo",
)


def public_view(doc: Optional[Dict]) -> Optional[Dict]:
    if not doc:
        return doc
    return database.sanitize({k: v for k, v in doc.items() if k not in PRIVATE_FIELDS})


def compute_bmi(weight: Optional[float], height: Optional[float]) -> Optional[float]:
    """BMI from kilograms and centimetres."""
    if not weight or not height:
        return None
    return round(weight / (height / 100) ** 2, 2)


def get_principal(principal_id: Any) -> Dict:
    if not database.is_obj_id(principal_id):
        raise NotFound("User not found")
    user = database.collection("user").find_one({"_id": database.to_obj_id(principal_id)}, PRIVATE_FIELDS)
    if not user:
        raise NotFound("User not found")
    return user


def register(payload: Dict[str, Any]) -> Dict:
    fields = {k: (payload.get(k) or "").strip() for k in ("fullName", "email", "username", "password")}
    if any(v == "" for v in fields.values()):
        raise ValidationError("All fields are required")
    role = payload.get("role") or "user"
    if role not in SELF_REGISTER_ROLES:
        raise ValidationError("Role must be 'user' or 'company'")
    if role != "company" and any(payload.get(f) for f in COMPANY_FIELDS):
        raise ValidationError("Only companies can provide registration and GST numbers")

    username = fields["username"].lower()
    email = fields["email"].lower()
    users = database.collection("user")
    if users.find_one({"$or": [{"email": email}, {"username": username}]}):
        raise Conflict("User with username or email already exists")

    user_doc = UserSchema(
        username=username,
        email=email,
        fullName=fields["fullName"],
        password=auth.hash_password(payload["password"]),
        role=role,
        companyRegistrationNo=payload.get("companyRegistrationNo") if role == "company" else None,
        gstNo=payload.get("gstNo") if role == "company" else None,
    )
    try:
        created = database.create_document("user", user_doc)
    except DuplicateKeyError:
        raise Conflict("User with username or email already exists")
    logger.info("Registered %s %s", role, username)
    return created


def authenticate(username: Optional[str], email: Optional[str], password: Optional[str]) -> Dict:
    if not username and not email:
        raise ValidationError("Username or Email is Required")
    clauses = []
    if username:
        clauses.append({"username": username.strip().lower()})
    if email:
        clauses.append({"email": email.strip().lower()})
    user = database.collection("user").find_one({"$or": clauses})
    if not user:
        raise NotFound("User doesn't exist")
    if not auth.verify_password(password or "", user.get("password", "")):
        logger.info("Failed login for %s", user["username"])
        raise Unauthorized("Incorrect Password.")
    return user


def create_admin(username: str, email: str, password: str, full_name: str) -> Dict:
    doc = UserSchema(
        username=username.lower(),
        email=email.lower(),
        fullName=full_name,
        password=auth.hash_password(password),
        role="admin",
        accountStatus="verified",
    )
    return database.create_document("user", doc)


def update_account(principal: Dict, changes: Dict[str, Any]) -> Dict:
    updates = {k: v for k, v in changes.items() if k in PROFILE_FIELDS and v is not None}
    if not updates:
        raise ValidationError("No fields to update")
    if not is_company(principal) and any(f in updates for f in COMPANY_FIELDS):
        raise ValidationError("Only companies can set registration and GST numbers")
    if "fullName" in updates and not str(updates["fullName"]).strip():
        raise ValidationError("Full name cannot be empty")
    if "email" in updates:
        updates["email"] = str(updates["email"]).strip().lower()
        clash = database.collection("user").find_one({"email": updates["email"], "_id": {"$ne": principal["_id"]}})
        if clash:
            raise Conflict("Email is already in use")
    weight = updates.get("weight", principal.get("weight"))
    height = updates.get("height", principal.get("height"))
    bmi = compute_bmi(weight, height)
    if bmi is not None:
        updates["bmi"] = bmi
    updates["updatedAt"] = database.now()

    try:
        user = database.collection("user").find_one_and_update(
            {"_id": principal["_id"]},
            {"$set": updates},
            projection=PRIVATE_FIELDS,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise Conflict("Email is already in use")
    if not user:
        raise NotFound("User not found")
    return user


def change_password(principal: Dict, old_password: str, new_password: str) -> None:
    user = database.collection("user").find_one({"_id": principal["_id"]})
    if not user:
        raise NotFound("User not found")
    if not auth.verify_password(old_password, user.get("password", "")):
        raise ValidationError("Invalid old password")
    database.collection("user").update_one(
        {"_id": user["_id"]},
        {"$set": {"password": auth.hash_password(new_password), "updatedAt": database.now()}},
    )
    logger.info("Password changed for %s", user["username"])


def update_avatar(principal: Dict, content: bytes, content_type: Optional[str]) -> Dict:
    media.check_image(content, content_type, "Avatar")
    uploaded = media.upload_image(content, principal["username"], media.USERS_FOLDER)
    user = database.collection("user").find_one_and_update(
        {"_id": principal["_id"]},
        {"$set": {"avatar": uploaded["url"], "avatarFileId": uploaded["fileId"], "updatedAt": database.now()}},
        projection=PRIVATE_FIELDS,
        return_document=ReturnDocument.AFTER,
    )
    if principal.get("avatar"):
        media.release_image(principal["avatar"], principal.get("avatarFileId"))
    return user
