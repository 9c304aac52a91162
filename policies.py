"""
Authorization policies.

Each policy answers allow/deny for a resolved principal (and optionally a
resource) with no HTTP or database access. Services call `require` to turn a
denial into Forbidden.
"""

from typing import Dict, Optional

from errors import Forbidden


def is_admin(principal: Optional[Dict]) -> bool:
    return bool(principal) and principal.get("role") == "admin"


def is_company(principal: Optional[Dict]) -> bool:
    return bool(principal) and principal.get("role") == "company"


def is_verified_company(principal: Optional[Dict]) -> bool:
    return is_company(principal) and principal.get("accountStatus") == "verified"


def can_request_verification(principal: Optional[Dict]) -> bool:
    return is_company(principal)


def can_moderate(principal: Optional[Dict]) -> bool:
    return is_admin(principal)


def can_manage_products(principal: Optional[Dict]) -> bool:
    return is_verified_company(principal)


def owns_product(principal: Optional[Dict], product: Optional[Dict]) -> bool:
    if not principal or not product:
        return False
    return str(product.get("companyId")) == str(principal.get("_id"))


def can_modify_product(principal: Optional[Dict], product: Optional[Dict]) -> bool:
    return can_manage_products(principal) and owns_product(principal, product)


def require(allowed: bool, message: str) -> None:
    if not allowed:
        raise Forbidden(message)
