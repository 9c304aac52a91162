from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile
from pydantic import BaseModel

import catalog
import moderation
import products
import scoring
from errors import api_response
from session import get_current_principal

router = APIRouter(prefix="/product", tags=["product"])


class HandleApprovalRequest(BaseModel):
    productId: Optional[Union[int, str]] = None
    action: Optional[str] = None


class ProductIdRequest(BaseModel):
    productId: Optional[Union[int, str]] = None


def _one(product: Dict) -> Dict:
    return catalog.populate_owners([product])[0]


def _read(upload: Optional[UploadFile]):
    if upload is None:
        return None, None
    return upload.file.read(), upload.content_type


# Company Routes
@router.post("/register", status_code=201)
def register_product(
    productId: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    nutritionalInfo: Optional[str] = Form(None),
    ingredients: Optional[str] = Form(None),
    manufacturingDate: Optional[str] = Form(None),
    expiryDate: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    certifications: Optional[str] = Form(None),
    productImage: Optional[UploadFile] = File(None),
    principal=Depends(get_current_principal),
):
    form = {
        "productId": productId,
        "name": name,
        "category": category,
        "description": description,
        "nutritionalInfo": nutritionalInfo,
        "ingredients": ingredients,
        "manufacturingDate": manufacturingDate,
        "expiryDate": expiryDate,
        "price": price,
        "tags": tags,
        "certifications": certifications,
    }
    content, content_type = _read(productImage)
    product = products.register_product(principal, form, content, content_type)
    return api_response(201, {"product": _one(product)}, "Product submitted for approval")


@router.patch("/update-image/{product_id}")
def update_product_image(
    product_id: str,
    productImage: Optional[UploadFile] = File(None),
    principal=Depends(get_current_principal),
):
    content, content_type = _read(productImage)
    product = products.update_product_image(principal, product_id, content, content_type)
    return api_response(200, {"product": _one(product)}, "Product image updated successfully")


@router.patch("/update-product/{product_id}")
def update_product_details(
    product_id: str,
    changes: Dict[str, Any] = Body(...),
    principal=Depends(get_current_principal),
):
    product = products.update_product_details(principal, product_id, changes)
    return api_response(200, {"product": _one(product)}, "Product details updated successfully")


@router.delete("/delete/{product_id}")
def delete_product(product_id: str, principal=Depends(get_current_principal)):
    products.delete_product(principal, product_id)
    return api_response(200, {}, "Product deleted successfully")


# Admin Routes
@router.get("/pending-approvals")
def pending_approvals(principal=Depends(get_current_principal)):
    items = moderation.pending_products(principal)
    return api_response(200, {"products": items}, "Pending product approval requests fetched successfully")


@router.post("/handle-approval")
def handle_approval(payload: HandleApprovalRequest, principal=Depends(get_current_principal)):
    product = moderation.decide_product(principal, payload.productId, payload.action)
    if product is None:
        return api_response(200, {}, "Product approval denied and product removed")
    return api_response(200, {"product": _one(product)}, "Product approved successfully")


@router.get("/approved-products")
def approved_products(principal=Depends(get_current_principal)):
    items = moderation.approved_products(principal)
    return api_response(200, {"products": items}, "Approved products fetched successfully")


@router.post("/remove-approval")
def remove_approval(payload: ProductIdRequest, principal=Depends(get_current_principal)):
    moderation.remove_product_approval(principal, payload.productId)
    return api_response(200, {}, "Product approval removed and product deleted")


# Public Routes
@router.get("/get-products")
def get_products(category: Optional[str] = None):
    items = catalog.list_approved(category)
    return api_response(200, {"products": items}, "All products fetched successfully")


@router.get("/rating/{product_id}")
def product_rating(product_id: str):
    product = catalog.get_by_product_id(product_id)
    result = scoring.rate(product.get("nutritionalInfo"))
    return api_response(200, result, "Product rating fetched successfully")


@router.get("/{product_id}")
def get_product(product_id: str):
    product = catalog.get_by_product_id(product_id)
    return api_response(200, {"product": _one(product)}, "Product fetched successfully")
