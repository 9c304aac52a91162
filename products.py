"""
Company-side product operations: registration (which opens an approval
request), detail and image edits, and deletion.

Multipart fields such as nutritionalInfo and ingredients arrive as JSON
strings; they are parsed once here into `ProductPayload` and never touched
as raw strings past this module.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator, model_validator
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import catalog
import database
import media
from errors import Conflict, Forbidden, NotFound, ValidationError
from policies import can_manage_products, can_modify_product, require
from schemas import CATEGORIES, MAX_PRODUCT_ID, TAGS, Product as ProductSchema

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "productId", "name", "category", "nutritionalInfo", "description",
    "ingredients", "manufacturingDate", "expiryDate", "price",
)
JSON_FIELDS = ("nutritionalInfo", "ingredients", "tags", "certifications")

_TAG_LOOKUP = {t.lower(): t for t in TAGS}


def _parse_date(value: Any) -> Any:
    if isinstance(value, str) and len(value.strip()) == 10:
        return value.strip() + "T00:00:00"
    return value


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _check_dates(manufactured: Optional[datetime], expires: Optional[datetime]) -> None:
    if manufactured and expires and _aware(manufactured) >= _aware(expires):
        raise ValueError("manufacturingDate must be before expiryDate")


class _ProductFields(BaseModel):
    @field_validator("category", mode="before", check_fields=False)
    @classmethod
    def known_category(cls, v):
        if v is None:
            return v
        category = catalog.normalize_category(str(v))
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category '{v}'")
        return category

    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def known_tags(cls, v):
        if v is None:
            return v
        if not isinstance(v, list):
            raise ValueError("tags must be a list")
        tags = []
        for tag in v:
            canonical = _TAG_LOOKUP.get(str(tag).strip().lower())
            if canonical is None:
                raise ValueError(f"Unknown tag '{tag}'")
            if canonical not in tags:
                tags.append(canonical)
        return tags

    @field_validator("ingredients", mode="before", check_fields=False)
    @classmethod
    def clean_ingredients(cls, v):
        if v is None:
            return v
        if not isinstance(v, list):
            raise ValueError("ingredients must be a list")
        cleaned = [str(i).strip() for i in v if str(i).strip()]
        if not cleaned:
            raise ValueError("ingredients must not be empty")
        return cleaned

    @field_validator("manufacturingDate", "expiryDate", mode="before", check_fields=False)
    @classmethod
    def date_only(cls, v):
        return _parse_date(v)


class ProductPayload(_ProductFields):
    productId: int = Field(..., ge=0, le=MAX_PRODUCT_ID)
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    category: str
    nutritionalInfo: Dict[str, Any]
    ingredients: List[str]
    manufacturingDate: datetime
    expiryDate: datetime
    price: float = Field(..., ge=0)
    tags: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def dates_in_order(self):
        _check_dates(self.manufacturingDate, self.expiryDate)
        return self


class ProductUpdate(_ProductFields):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    nutritionalInfo: Optional[Dict[str, Any]] = None
    ingredients: Optional[List[str]] = None
    manufacturingDate: Optional[datetime] = None
    expiryDate: Optional[datetime] = None
    price: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    certifications: Optional[List[str]] = None


def _as_validation_error(e: PydanticValidationError) -> ValidationError:
    errors = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in e.errors(include_url=False)
    ]
    first = errors[0] if errors else {"field": "", "message": "Invalid product"}
    message = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
    return ValidationError(message, errors=errors)


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _decode_json_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    for field in JSON_FIELDS:
        if isinstance(data.get(field), str):
            try:
                data[field] = json.loads(data[field])
            except ValueError:
                raise ValidationError(f"Invalid JSON for field '{field}'")
    return data


def parse_payload(form: Dict[str, Any]) -> ProductPayload:
    data = _decode_json_fields({k: v for k, v in form.items() if not _blank(v)})
    try:
        return ProductPayload(**data)
    except PydanticValidationError as e:
        raise _as_validation_error(e)


def parse_update(changes: Dict[str, Any]) -> ProductUpdate:
    data = _decode_json_fields({k: v for k, v in changes.items() if v is not None})
    try:
        return ProductUpdate(**data)
    except PydanticValidationError as e:
        raise _as_validation_error(e)


def _parse_product_id(value: Any) -> Optional[int]:
    if _blank(value):
        return None
    try:
        product_id = int(str(value).strip())
    except ValueError:
        raise ValidationError("productId must be a number")
    if not 0 <= product_id <= MAX_PRODUCT_ID:
        raise ValidationError(f"productId must be between 0 and {MAX_PRODUCT_ID}")
    return product_id


def register_product(principal: Dict, form: Dict[str, Any], image: Optional[bytes], image_type: Optional[str]) -> Dict:
    require(can_manage_products(principal), "Only verified companies can register products")

    product_id = _parse_product_id(form.get("productId"))
    if product_id is not None and database.collection("product").find_one({"productId": product_id}):
        raise Conflict("Product with this ID already exists")

    if any(_blank(form.get(f)) for f in REQUIRED_FIELDS):
        raise ValidationError("Please provide all required fields")
    if not image:
        raise ValidationError("Product image is required")
    media.check_image(image, image_type, "Product image")

    payload = parse_payload(form)
    uploaded = media.upload_image(image, str(payload.productId), media.PRODUCTS_FOLDER)

    product = ProductSchema(
        **payload.model_dump(),
        productImage=uploaded["url"],
        productImageFileId=uploaded["fileId"],
        companyId=principal["_id"],
        isApproved=False,
        approvalRequested=True,
    )
    try:
        created = database.create_document("product", product)
    except DuplicateKeyError:
        media.release_image(uploaded["url"], uploaded["fileId"])
        raise Conflict("Product with this ID already exists")
    logger.info("Product %s submitted for approval by %s", payload.productId, principal.get("username"))
    return created


def _owned_product(principal: Dict, product_id: Any, action: str) -> Dict:
    require(can_manage_products(principal), f"Only verified companies can {action} products")
    product = catalog.get_by_product_id(product_id)
    if not can_modify_product(principal, product):
        raise Forbidden(f"You are not authorized to {action} this product")
    return product


def update_product_details(principal: Dict, product_id: Any, changes: Dict[str, Any]) -> Dict:
    product = _owned_product(principal, product_id, "update")
    update = parse_update(changes)
    updates = update.model_dump(exclude_none=True)
    if not updates:
        raise ValidationError("No fields to update")
    try:
        _check_dates(updates.get("manufacturingDate", product.get("manufacturingDate")),
                     updates.get("expiryDate", product.get("expiryDate")))
    except ValueError as e:
        raise ValidationError(str(e))
    updates["updatedAt"] = database.now()
    return database.collection("product").find_one_and_update(
        {"_id": product["_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )


def update_product_image(principal: Dict, product_id: Any, image: Optional[bytes], image_type: Optional[str]) -> Dict:
    product = _owned_product(principal, product_id, "update")
    media.check_image(image, image_type, "Product image")
    uploaded = media.upload_image(image, str(product["productId"]), media.PRODUCTS_FOLDER)
    updated = database.collection("product").find_one_and_update(
        {"_id": product["_id"]},
        {"$set": {"productImage": uploaded["url"], "productImageFileId": uploaded["fileId"], "updatedAt": database.now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        media.release_image(uploaded["url"], uploaded["fileId"])
        raise NotFound("Product not found")
    media.release_image(product.get("productImage"), product.get("productImageFileId"))
    return updated


def delete_product(principal: Dict, product_id: Any) -> None:
    product = _owned_product(principal, product_id, "delete")
    removed = database.collection("product").find_one_and_delete({"_id": product["_id"], "companyId": principal["_id"]})
    if removed is None:
        raise NotFound("Product not found")
    database.collection("user").update_one({"_id": principal["_id"]}, {"$pull": {"products": removed["_id"]}})
    media.release_image(removed.get("productImage"), removed.get("productImageFileId"))
    logger.info("Product %s deleted by %s", removed["productId"], principal.get("username"))
