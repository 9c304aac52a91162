import pytest
from bson import ObjectId

from errors import Forbidden
from policies import (
    can_manage_products,
    can_moderate,
    can_modify_product,
    can_request_verification,
    owns_product,
    require,
)

COMPANY_ID = ObjectId()
user = {"_id": ObjectId(), "role": "user", "accountStatus": "pending"}
admin = {"_id": ObjectId(), "role": "admin", "accountStatus": "verified"}
pending_company = {"_id": COMPANY_ID, "role": "company", "accountStatus": "pending"}
approved_company = {"_id": COMPANY_ID, "role": "company", "accountStatus": "approved"}
verified_company = {"_id": COMPANY_ID, "role": "company", "accountStatus": "verified"}
own_product = {"productId": 1, "companyId": COMPANY_ID}
other_product = {"productId": 2, "companyId": ObjectId()}


@pytest.mark.parametrize("principal,allowed", [
    (user, False),
    (admin, False),
    (pending_company, True),
    (verified_company, True),
    (None, False),
])
def test_can_request_verification(principal, allowed):
    assert can_request_verification(principal) is allowed


def test_only_admins_moderate():
    assert can_moderate(admin)
    assert not can_moderate(verified_company)
    assert not can_moderate(user)


def test_product_rights_need_verified_company():
    assert can_manage_products(verified_company)
    assert not can_manage_products(pending_company)
    # "approved" is not the product gate
    assert not can_manage_products(approved_company)
    assert not can_manage_products(admin)


def test_ownership():
    assert owns_product(verified_company, own_product)
    assert not owns_product(verified_company, other_product)
    assert not owns_product(None, own_product)
    assert can_modify_product(verified_company, own_product)
    assert not can_modify_product(pending_company, own_product)
    assert not can_modify_product(verified_company, other_product)


def test_require_raises_forbidden():
    require(True, "fine")
    with pytest.raises(Forbidden) as exc:
        require(False, "nope")
    assert exc.value.status_code == 403
    assert exc.value.message == "nope"
