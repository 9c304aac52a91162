import pytest

import moderation
import products
from conftest import IMAGE, product_form
from errors import Forbidden, InvalidState, NotFound, ValidationError


def reload(mongo, doc):
    return mongo["user"].find_one({"_id": doc["_id"]})


@pytest.fixture
def admin(make_principal):
    return make_principal("root", role="admin")


@pytest.fixture
def company(make_principal):
    return make_principal("acme", role="company")


@pytest.fixture
def verified(make_principal):
    return make_principal("foodco", role="company", status="verified")


def submit(company, product_id=1001):
    return products.register_product(company, product_form(product_id), IMAGE[1], IMAGE[2])


# Company verification

def test_request_verification_twice(mongo, company):
    moderation.request_verification(company)
    assert reload(mongo, company)["verificationRequested"] is True
    with pytest.raises(InvalidState):
        moderation.request_verification(reload(mongo, company))


def test_request_verification_only_for_companies(make_principal, admin):
    user = make_principal("bob")
    for principal in (user, admin):
        with pytest.raises(Forbidden):
            moderation.request_verification(principal)


def test_approve_verification(mongo, admin, company):
    moderation.request_verification(company)
    updated = moderation.decide_verification(admin, str(company["_id"]), "approve")
    assert updated["accountStatus"] == "verified"
    assert updated["verificationRequested"] is False
    assert "password" not in updated

    with pytest.raises(InvalidState, match="already verified"):
        moderation.request_verification(reload(mongo, company))


def test_deny_keeps_status_and_allows_rerequest(mongo, admin, company):
    moderation.request_verification(company)
    updated = moderation.decide_verification(admin, str(company["_id"]), "deny")
    assert updated["accountStatus"] == "pending"
    assert updated["verificationRequested"] is False
    moderation.request_verification(reload(mongo, company))
    assert reload(mongo, company)["verificationRequested"] is True


def test_decide_without_pending_request(admin, company):
    with pytest.raises(InvalidState):
        moderation.decide_verification(admin, str(company["_id"]), "approve")


def test_decide_guards(admin, company, verified, make_principal):
    with pytest.raises(Forbidden):
        moderation.decide_verification(verified, str(company["_id"]), "approve")
    with pytest.raises(ValidationError):
        moderation.decide_verification(admin, str(company["_id"]), "maybe")
    with pytest.raises(ValidationError):
        moderation.decide_verification(admin, None, "approve")
    user = make_principal("bob")
    with pytest.raises(NotFound):
        moderation.decide_verification(admin, str(user["_id"]), "approve")
    with pytest.raises(NotFound):
        moderation.decide_verification(admin, "0123456789abcdef01234567", "approve")


def test_remove_verification(mongo, admin, company, verified):
    updated = moderation.remove_verification(admin, str(verified["_id"]))
    assert updated["accountStatus"] == "pending"
    with pytest.raises(InvalidState):
        moderation.remove_verification(admin, str(company["_id"]))
    with pytest.raises(Forbidden):
        moderation.remove_verification(company, str(verified["_id"]))


def test_verified_never_keeps_request_flag(mongo, admin, company):
    moderation.request_verification(company)
    moderation.decide_verification(admin, str(company["_id"]), "approve")
    for doc in mongo["user"].find({"role": "company", "accountStatus": "verified"}):
        assert doc["verificationRequested"] is False


def test_listings_for_admin(admin, company, verified):
    moderation.request_verification(company)
    pending = moderation.pending_verifications(admin)
    assert [c["username"] for c in pending] == ["acme"]
    assert [c["username"] for c in moderation.verified_companies(admin)] == ["foodco"]
    with pytest.raises(Forbidden):
        moderation.pending_verifications(company)


# Product approval

def test_submitted_product_awaits_approval(mongo, verified, uploads):
    product = submit(verified)
    assert product["isApproved"] is False
    assert product["approvalRequested"] is True
    assert reload(mongo, verified)["products"] == []


def test_approve_product(mongo, admin, verified, uploads):
    product = submit(verified)
    approved = moderation.decide_product(admin, 1001, "approve")
    assert approved["isApproved"] is True
    assert approved["approvalRequested"] is False
    assert reload(mongo, verified)["products"] == [product["_id"]]

    with pytest.raises(InvalidState):
        moderation.decide_product(admin, 1001, "approve")


def test_approve_by_internal_id(admin, verified, uploads):
    product = submit(verified)
    approved = moderation.decide_product(admin, str(product["_id"]), "approve")
    assert approved["productId"] == 1001


def test_deny_product_deletes_it(mongo, admin, verified, uploads):
    submit(verified)
    assert moderation.decide_product(admin, "1001", "deny") is None
    assert mongo["product"].find_one({"productId": 1001}) is None
    assert uploads["released"] == ["file-1"]
    with pytest.raises(NotFound):
        moderation.decide_product(admin, 1001, "approve")


def test_decide_product_guards(admin, verified, uploads):
    submit(verified)
    with pytest.raises(Forbidden):
        moderation.decide_product(verified, 1001, "approve")
    with pytest.raises(ValidationError):
        moderation.decide_product(admin, None, "approve")
    with pytest.raises(ValidationError):
        moderation.decide_product(admin, 1001, None)
    with pytest.raises(ValidationError):
        moderation.decide_product(admin, 1001, "publish")
    with pytest.raises(NotFound):
        moderation.decide_product(admin, 9999, "approve")


def test_remove_product_approval(mongo, admin, verified, uploads):
    submit(verified)
    with pytest.raises(InvalidState):
        moderation.remove_product_approval(admin, 1001)
    moderation.decide_product(admin, 1001, "approve")
    moderation.remove_product_approval(admin, 1001)
    assert mongo["product"].find_one({"productId": 1001}) is None
    assert reload(mongo, verified)["products"] == []
    assert uploads["released"] == ["file-1"]


def test_approved_products_are_in_owner_list(mongo, admin, verified, uploads):
    for pid in (1, 2, 3):
        submit(verified, pid)
    moderation.decide_product(admin, 1, "approve")
    moderation.decide_product(admin, 3, "approve")
    owner_products = reload(mongo, verified)["products"]
    for product in mongo["product"].find({"isApproved": True}):
        assert product["approvalRequested"] is False
        assert product["_id"] in owner_products
    assert [p["productId"] for p in moderation.pending_products(admin)] == [2]
