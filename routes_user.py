from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from pydantic import BaseModel, EmailStr, Field

import accounts
import auth
import catalog
import moderation
from errors import api_response
from policies import is_company, require
from session import clear_auth_cookies, get_current_principal, set_auth_cookies

router = APIRouter(prefix="/user", tags=["user"])


# Request Models
class RegisterRequest(BaseModel):
    fullName: str
    email: EmailStr
    username: str
    password: str
    role: Optional[str] = "user"
    companyRegistrationNo: Optional[str] = None
    gstNo: Optional[str] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str


class RefreshRequest(BaseModel):
    refreshToken: Optional[str] = None


class UpdateAccountRequest(BaseModel):
    fullName: Optional[str] = None
    email: Optional[EmailStr] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    dob: Optional[datetime] = None
    weight: Optional[float] = Field(None, gt=0, description="Kilograms")
    height: Optional[float] = Field(None, gt=0, description="Centimetres")
    gender: Optional[bool] = None
    isVeg: Optional[bool] = None
    companyRegistrationNo: Optional[str] = None
    gstNo: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    oldPassword: str
    newPassword: str


class HandleVerificationRequest(BaseModel):
    companyId: Optional[str] = None
    action: Optional[str] = None


class CompanyIdRequest(BaseModel):
    companyId: Optional[str] = None


# Auth Routes
@router.post("/register", status_code=201)
def register(payload: RegisterRequest):
    user = accounts.register(payload.model_dump())
    return api_response(201, {"user": accounts.public_view(user)}, "User Created Successfully")


@router.post("/login")
def login(payload: LoginRequest, response: Response):
    user = accounts.authenticate(payload.username, payload.email, payload.password)
    tokens = auth.issue_pair(user["_id"])
    set_auth_cookies(response, tokens)
    logged_in = accounts.get_principal(user["_id"])
    return api_response(
        200,
        {"user": accounts.public_view(logged_in), **tokens},
        "User logged In Successfully!",
    )


@router.post("/logout")
def logout(response: Response, principal=Depends(get_current_principal)):
    auth.revoke(principal["_id"])
    clear_auth_cookies(response)
    return api_response(200, {}, "User logged out successfully")


@router.post("/refresh-token")
def refresh_token(request: Request, response: Response, payload: Optional[RefreshRequest] = None):
    incoming = request.cookies.get("refreshToken") or (payload.refreshToken if payload else None)
    tokens = auth.rotate(incoming)
    set_auth_cookies(response, tokens)
    return api_response(200, tokens, "Access token refreshed")


# Profile Routes
@router.get("/profile")
def profile(principal=Depends(get_current_principal)):
    return api_response(200, {"user": accounts.public_view(principal)}, "User fetched successfully")


@router.patch("/update-account")
def update_account(payload: UpdateAccountRequest, principal=Depends(get_current_principal)):
    user = accounts.update_account(principal, payload.model_dump(exclude_none=True))
    return api_response(200, {"user": accounts.public_view(user)}, "Account details updated successfully")


@router.post("/change-password")
def change_password(payload: ChangePasswordRequest, principal=Depends(get_current_principal)):
    accounts.change_password(principal, payload.oldPassword, payload.newPassword)
    return api_response(200, {}, "Password changed successfully")


@router.patch("/update-avatar")
def update_avatar(avatar: Optional[UploadFile] = File(None), principal=Depends(get_current_principal)):
    content = avatar.file.read() if avatar else None
    user = accounts.update_avatar(principal, content, avatar.content_type if avatar else None)
    return api_response(200, {"user": accounts.public_view(user)}, "Avatar updated successfully")


@router.get("/get-all-products")
def company_products(principal=Depends(get_current_principal)):
    require(is_company(principal), "Only companies have products")
    products = catalog.list_by_company(principal["_id"])
    return api_response(200, {"products": products}, "Company products fetched successfully")


# Verification Routes
@router.post("/request-verification")
def request_verification(principal=Depends(get_current_principal)):
    company = moderation.request_verification(principal)
    return api_response(200, {"user": accounts.public_view(company)}, "Verification request submitted")


@router.get("/pending-verifications")
def pending_verifications(principal=Depends(get_current_principal)):
    companies = [accounts.public_view(c) for c in moderation.pending_verifications(principal)]
    return api_response(200, {"companies": companies}, "Pending verification requests fetched successfully")


@router.post("/handle-verification")
def handle_verification(payload: HandleVerificationRequest, principal=Depends(get_current_principal)):
    company = moderation.decide_verification(principal, payload.companyId, payload.action)
    message = "Company verified successfully" if payload.action == "approve" else "Verification request denied"
    return api_response(200, {"user": accounts.public_view(company)}, message)


@router.get("/verified-companies")
def verified_companies(principal=Depends(get_current_principal)):
    companies = [accounts.public_view(c) for c in moderation.verified_companies(principal)]
    return api_response(200, {"companies": companies}, "Verified companies fetched successfully")


@router.post("/remove-verification")
def remove_verification(payload: CompanyIdRequest, principal=Depends(get_current_principal)):
    company = moderation.remove_verification(principal, payload.companyId)
    return api_response(200, {"user": accounts.public_view(company)}, "Company verification removed")


@router.get("/{user_id}")
def get_user(user_id: str):
    user = accounts.get_principal(user_id)
    return api_response(200, {"user": accounts.public_view(user)}, "User fetched successfully")
