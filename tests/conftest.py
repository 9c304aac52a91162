import json

import mongomock
import pytest
from fastapi.testclient import TestClient

import accounts
import database
import media
import main

PASSWORD = "Secret@123"
API = "/api/v1"


@pytest.fixture
def mongo(monkeypatch):
    mock_db = mongomock.MongoClient().db
    monkeypatch.setattr(database, "db", mock_db)
    database.ensure_indexes()
    return mock_db


@pytest.fixture
def uploads(monkeypatch):
    """Stand-in for the image host: records uploads and releases."""
    state = {"uploaded": [], "released": []}

    def fake_upload(content, name, folder):
        n = len(state["uploaded"]) + 1
        item = {"url": f"https://ik.example.com{folder}/{name}_{n}.png", "fileId": f"file-{n}"}
        state["uploaded"].append(item)
        return item

    def fake_release(url, file_id=None):
        state["released"].append(file_id or url)
        return True

    monkeypatch.setattr(media, "upload_image", fake_upload)
    monkeypatch.setattr(media, "release_image", fake_release)
    return state


@pytest.fixture
def client(mongo, uploads):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def make_principal(mongo):
    def _make(username, role="user", status=None, requested=False):
        if role == "admin":
            doc = accounts.create_admin(username, f"{username}@example.com", PASSWORD, username.title())
        else:
            doc = accounts.register({
                "fullName": username.title(),
                "email": f"{username}@example.com",
                "username": username,
                "password": PASSWORD,
                "role": role,
            })
        changes = {"verificationRequested": requested}
        if status:
            changes["accountStatus"] = status
        mongo["user"].update_one({"_id": doc["_id"]}, {"$set": changes})
        return mongo["user"].find_one({"_id": doc["_id"]})
    return _make


@pytest.fixture
def login(client):
    """Log in and return an Authorization header; cookies are dropped so headers decide identity."""
    def _login(username, password=PASSWORD):
        resp = client.post(f"{API}/user/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {resp.json()['data']['accessToken']}"}
    return _login


def product_form(product_id=1001, **overrides):
    form = {
        "productId": str(product_id),
        "name": "Oat Biscuits",
        "category": "Biscuits",
        "description": "Whole grain oat biscuits",
        "nutritionalInfo": json.dumps({"energy": 450, "sugar": 12.5, "protein": 8}),
        "ingredients": json.dumps(["oats", "sugar", "butter"]),
        "manufacturingDate": "2024-01-01",
        "expiryDate": "2024-12-31",
        "price": "49.5",
        "tags": json.dumps(["Vegetarian"]),
    }
    form.update(overrides)
    return {k: v for k, v in form.items() if v is not None}


IMAGE = ("biscuits.png", b"\x89PNG\r\n\x1a\nfake", "image/png")
