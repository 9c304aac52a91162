"""
Database Schemas for the Nutrition Marketplace

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (User -> "user").

We will use these collections:
- user: principals (user, company, admin) and their moderation flags
- product: packaged food products owned by a company, gated by admin approval
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field

Role = Literal["user", "company", "admin"]
AccountStatus = Literal["pending", "approved", "verified", "banned"]

# productId is stored as a BSON int64
MAX_PRODUCT_ID = 2**63 - 1

CATEGORIES = (
    "biscuits",
    "breakfast and spreads",
    "chocolates and desserts",
    "cold drinks and juices",
    "dairy, bread and eggs",
    "instant foods",
    "snacks",
    "cakes and bakes",
    "dry fruits, oil and masalas",
    "meat",
    "rice, atta and dals",
    "tea, coffee and more",
    "supplements and mores",
)

TAGS = (
    "vegan",
    "vegetarian",
    "gluten-free",
    "sugar-free",
    "low-fat",
    "organic",
    "non-GMO",
    "high-protein",
    "keto-friendly",
    "paleo-friendly",
    "dairy-free",
    "nut-free",
    "soy-free",
)


class User(BaseModel):
    username: str = Field(..., min_length=1, description="Lowercased, unique")
    email: EmailStr
    fullName: str = Field(..., min_length=1)
    password: str = Field(..., description="BCrypt hash of password")
    role: Role = Field("user")
    accountStatus: AccountStatus = Field("pending")
    verificationRequested: bool = Field(False)
    refreshToken: Optional[str] = None
    avatar: Optional[str] = None
    avatarFileId: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None
    dob: Optional[datetime] = None
    weight: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    bmi: Optional[float] = None
    gender: Optional[bool] = None
    isVeg: Optional[bool] = None
    companyRegistrationNo: Optional[str] = None
    gstNo: Optional[str] = None
    products: List[Any] = Field(default_factory=list, description="Approved product _ids (company)")
    favourites: List[Any] = Field(default_factory=list)
    history: List[Any] = Field(default_factory=list)
    news: List[Any] = Field(default_factory=list)


class Product(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    productId: int = Field(..., ge=0, le=MAX_PRODUCT_ID, description="Globally unique numeric id")
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: Literal[CATEGORIES]
    nutritionalInfo: Dict[str, Any]
    ingredients: List[str] = Field(..., min_length=1)
    tags: List[Literal[TAGS]] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    manufacturingDate: datetime
    expiryDate: datetime
    price: float = Field(..., ge=0)
    productImage: str
    productImageFileId: Optional[str] = None
    companyId: ObjectId
    isApproved: bool = Field(False)
    approvalRequested: bool = Field(False)
    publicRating: float = Field(0.0, ge=0, le=5)
    diseases: List[str] = Field(default_factory=list)
