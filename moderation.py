"""
Admin moderation: company verification and product approval.

Company verification

    pending/approved --request--> requested --approve--> verified
                                  requested --deny-----> pending/approved (status kept)
    verified --remove--> pending

Product approval

    requested (approvalRequested, not approved) --approve--> approved
    requested --deny--> deleted
    approved --remove--> deleted

Every transition is one conditional update that only matches documents in the
expected source state. When nothing matches, the document is re-read to tell
NotFound from InvalidState, so a transition can never apply twice.
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import DESCENDING, ReturnDocument

import catalog
import database
import media
from errors import InvalidState, NotFound, ValidationError
from policies import can_moderate, can_request_verification, require

logger = logging.getLogger(__name__)

ACTIONS = ("approve", "deny")


def _check_action(action: Optional[str]) -> str:
    if action not in ACTIONS:
        raise ValidationError("Action must be 'approve' or 'deny'")
    return action


# Company verification

def request_verification(principal: Dict) -> Dict:
    require(can_request_verification(principal), "Only companies can request verification")
    users = database.collection("user")
    company = users.find_one_and_update(
        {
            "_id": principal["_id"],
            "role": "company",
            "accountStatus": {"$in": ["pending", "approved"]},
            "verificationRequested": {"$ne": True},
        },
        {"$set": {"verificationRequested": True, "updatedAt": database.now()}},
        projection={"password": 0, "refreshToken": 0},
        return_document=ReturnDocument.AFTER,
    )
    if company is None:
        current = users.find_one({"_id": principal["_id"]}) or {}
        if current.get("accountStatus") == "verified":
            raise InvalidState("Company is already verified")
        if current.get("accountStatus") == "banned":
            raise InvalidState("Banned companies cannot request verification")
        raise InvalidState("Verification request already pending")
    logger.info("Company %s requested verification", company["username"])
    return company


def _company(company_id: Any) -> Dict:
    if not company_id:
        raise ValidationError("Company ID is required")
    if not database.is_obj_id(company_id):
        raise NotFound("Company not found")
    company = database.collection("user").find_one({"_id": database.to_obj_id(company_id), "role": "company"})
    if not company:
        raise NotFound("Company not found")
    return company


def decide_verification(admin: Dict, company_id: Any, action: Optional[str]) -> Dict:
    require(can_moderate(admin), "Only admins can handle verification requests")
    if not company_id or not action:
        raise ValidationError("Company ID and action are required")
    action = _check_action(action)
    company = _company(company_id)

    changes = {"verificationRequested": False, "updatedAt": database.now()}
    if action == "approve":
        changes["accountStatus"] = "verified"
    updated = database.collection("user").find_one_and_update(
        {"_id": company["_id"], "role": "company", "verificationRequested": True},
        {"$set": changes},
        projection={"password": 0, "refreshToken": 0},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise InvalidState("No pending verification request for this company")
    logger.info("Admin %s chose %s for verification of %s", admin.get("username"), action, company["username"])
    return updated


def remove_verification(admin: Dict, company_id: Any) -> Dict:
    require(can_moderate(admin), "Only admins can remove company verification")
    company = _company(company_id)
    updated = database.collection("user").find_one_and_update(
        {"_id": company["_id"], "role": "company", "accountStatus": "verified"},
        {"$set": {"accountStatus": "pending", "updatedAt": database.now()}},
        projection={"password": 0, "refreshToken": 0},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise InvalidState("Company is not verified")
    logger.info("Admin %s removed verification of %s", admin.get("username"), company["username"])
    return updated


def pending_verifications(admin: Dict) -> List[Dict]:
    require(can_moderate(admin), "Only admins can access this endpoint")
    return database.get_documents(
        "user",
        {"role": "company", "verificationRequested": True},
        sort=[("updatedAt", DESCENDING)],
    )


def verified_companies(admin: Dict) -> List[Dict]:
    require(can_moderate(admin), "Only admins can access this endpoint")
    return database.get_documents(
        "user",
        {"role": "company", "accountStatus": "verified"},
        sort=[("updatedAt", DESCENDING)],
    )


# Product approval

def _existing_product(product_ref: Any) -> Dict:
    product = catalog.find_product(product_ref)
    if not product:
        raise NotFound("Product not found")
    return product


def decide_product(admin: Dict, product_ref: Any, action: Optional[str]) -> Optional[Dict]:
    """Approve or deny a submitted product. Returns the approved product, or None on deny."""
    require(can_moderate(admin), "Only admins can handle product approvals")
    if product_ref in (None, "") or not action:
        raise ValidationError("Product ID and action are required")
    action = _check_action(action)
    product = _existing_product(product_ref)
    pending = {"_id": product["_id"], "approvalRequested": True}
    products = database.collection("product")

    if action == "approve":
        approved = products.find_one_and_update(
            pending,
            {"$set": {"isApproved": True, "approvalRequested": False, "updatedAt": database.now()}},
            return_document=ReturnDocument.AFTER,
        )
        if approved is None:
            raise InvalidState("No pending approval request for this product")
        database.collection("user").update_one(
            {"_id": approved["companyId"]},
            {"$addToSet": {"products": approved["_id"]}},
        )
        logger.info("Admin %s approved product %s", admin.get("username"), approved["productId"])
        return approved

    denied = products.find_one_and_delete(pending)
    if denied is None:
        raise InvalidState("No pending approval request for this product")
    media.release_image(denied.get("productImage"), denied.get("productImageFileId"))
    logger.info("Admin %s denied product %s", admin.get("username"), denied["productId"])
    return None


def remove_product_approval(admin: Dict, product_ref: Any) -> Dict:
    require(can_moderate(admin), "Only admins can remove product approval")
    product = _existing_product(product_ref)
    removed = database.collection("product").find_one_and_delete({"_id": product["_id"], "isApproved": True})
    if removed is None:
        raise InvalidState("Product is not approved")
    database.collection("user").update_one(
        {"_id": removed["companyId"]},
        {"$pull": {"products": removed["_id"]}},
    )
    media.release_image(removed.get("productImage"), removed.get("productImageFileId"))
    logger.info("Admin %s removed approved product %s", admin.get("username"), removed["productId"])
    return removed


def pending_products(admin: Dict) -> List[Dict]:
    require(can_moderate(admin), "Only admins can access this endpoint")
    return catalog.list_pending()


def approved_products(admin: Dict) -> List[Dict]:
    require(can_moderate(admin), "Only admins can access this endpoint")
    return catalog.list_approved()
