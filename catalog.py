"""
Read side of the product store.

Listings are newest first and attach a short owner summary in place of the
raw companyId.
"""

from typing import Any, Dict, List, Optional

from pymongo import DESCENDING

import database
from errors import NotFound, ValidationError
from schemas import MAX_PRODUCT_ID

OWNER_FIELDS = ("fullName", "username", "email")


def normalize_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return None
    return " ".join(category.split()).lower() or None


def numeric_product_id(ref: Any) -> Optional[int]:
    """The productId spelled by `ref`, or None unless it is plain ASCII digits within int64."""
    ref = str(ref).strip()
    if not (ref.isascii() and ref.isdecimal()):
        return None
    try:
        value = int(ref)
    except ValueError:
        return None
    return value if value <= MAX_PRODUCT_ID else None


def product_query(product_ref: Any) -> Dict:
    """Filter for a product given either its numeric productId or its internal id."""
    if product_ref is None or str(product_ref).strip() == "":
        raise ValidationError("Product ID is required")
    ref = str(product_ref).strip()
    product_id = numeric_product_id(ref)
    if product_id is not None:
        return {"productId": product_id}
    if database.is_obj_id(ref):
        return {"_id": database.to_obj_id(ref)}
    raise ValidationError("Invalid product id")


def populate_owners(products: List[Dict]) -> List[Dict]:
    owner_ids = list({p["companyId"] for p in products if p.get("companyId") is not None})
    owners = {}
    if owner_ids:
        projection = {f: 1 for f in OWNER_FIELDS}
        owners = {u["_id"]: u for u in database.collection("user").find({"_id": {"$in": owner_ids}}, projection)}
    result = []
    for p in products:
        item = database.sanitize(p)
        owner = owners.get(p.get("companyId"))
        if owner:
            item["companyId"] = database.sanitize(owner)
        result.append(item)
    return result


def _list(filter_dict: Dict) -> List[Dict]:
    docs = database.get_documents("product", filter_dict, sort=[("createdAt", DESCENDING)])
    return populate_owners(docs)


def list_approved(category: Optional[str] = None) -> List[Dict]:
    q: Dict[str, Any] = {"isApproved": True}
    category = normalize_category(category)
    if category:
        q["category"] = category
    return _list(q)


def list_pending() -> List[Dict]:
    return _list({"approvalRequested": True, "isApproved": False})


def list_by_company(company_id: Any) -> List[Dict]:
    return _list({"companyId": database.to_obj_id(company_id)})


def find_product(product_ref: Any) -> Optional[Dict]:
    return database.collection("product").find_one(product_query(product_ref))


def get_by_product_id(product_id: Any) -> Dict:
    """Detail lookup by the public productId, regardless of approval state."""
    ref = numeric_product_id(product_id)
    if ref is None:
        raise NotFound("Product not found")
    product = database.collection("product").find_one({"productId": ref})
    if not product:
        raise NotFound("Product not found")
    return product
