import pytest
import requests

import media
import scoring
import settings
from errors import Internal, ValidationError


class FakeResponse:
    def __init__(self, payload=None, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


@pytest.fixture
def imagekit(monkeypatch):
    monkeypatch.setattr(settings, "IMAGEKIT_PRIVATE_KEY", "private_test")


def test_check_image_limits(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 4)
    assert media.check_image(b"abcd", "image/jpeg") == b"abcd"
    with pytest.raises(ValidationError):
        media.check_image(b"abcde", "image/jpeg")
    with pytest.raises(ValidationError):
        media.check_image(b"abc", "application/pdf")
    with pytest.raises(ValidationError):
        media.check_image(None, "image/png")


def test_upload_image(monkeypatch, imagekit):
    calls = {}

    def fake_post(url, **kwargs):
        calls.update(kwargs, url=url)
        return FakeResponse({"url": "https://ik.example.com/products/1001_1.png", "fileId": "abc"})

    monkeypatch.setattr(requests, "post", fake_post)
    assert media.upload_image(b"img", "1001", media.PRODUCTS_FOLDER) == {
        "url": "https://ik.example.com/products/1001_1.png",
        "fileId": "abc",
    }
    assert calls["url"] == media.UPLOAD_URL
    assert calls["data"]["folder"] == "/products"
    assert calls["auth"] == ("private_test", "")


def test_upload_failure_is_internal(monkeypatch, imagekit):
    monkeypatch.setattr(requests, "post", lambda url, **kw: FakeResponse({}, status=500))
    with pytest.raises(Internal):
        media.upload_image(b"img", "1001", media.PRODUCTS_FOLDER)


def test_upload_without_configuration(monkeypatch):
    monkeypatch.setattr(settings, "IMAGEKIT_PRIVATE_KEY", None)
    with pytest.raises(Internal):
        media.upload_image(b"img", "1001", media.PRODUCTS_FOLDER)


def test_release_image_looks_up_file_id(monkeypatch, imagekit):
    deleted = []
    monkeypatch.setattr(requests, "get", lambda url, **kw: FakeResponse([{"fileId": "found-1"}]))
    monkeypatch.setattr(requests, "delete", lambda url, **kw: deleted.append(url) or FakeResponse(None, 204))
    assert media.release_image("https://ik.example.com/products/1001_1.png") is True
    assert deleted == [f"{media.FILES_URL}/found-1"]


def test_release_image_never_raises(monkeypatch, imagekit):
    monkeypatch.setattr(requests, "delete", lambda url, **kw: FakeResponse(None, 500))
    assert media.release_image("https://ik.example.com/x.png", "abc") is False
    monkeypatch.setattr(settings, "IMAGEKIT_PRIVATE_KEY", None)
    assert media.release_image("https://ik.example.com/x.png", "abc") is False
    assert media.release_image(None) is False


def test_rating(monkeypatch):
    monkeypatch.setattr(settings, "ML_MODEL_API_URL", "http://ml.local/predict")
    sent = {}

    def fake_post(url, json=None, timeout=None):
        sent["body"] = json
        return FakeResponse({"rating": 4.2, "predicted_disease": ["obesity"]})

    monkeypatch.setattr(requests, "post", fake_post)
    assert scoring.rate({"sugar": 30}) == {"rating": 4.2, "diseases": ["obesity"]}
    assert sent["body"] == {"sugar": 30}


@pytest.mark.parametrize("response", [FakeResponse({"predicted_disease": []}), FakeResponse({}, status=502)])
def test_rating_failures(monkeypatch, response):
    monkeypatch.setattr(settings, "ML_MODEL_API_URL", "http://ml.local/predict")
    monkeypatch.setattr(requests, "post", lambda url, **kw: response)
    with pytest.raises(Internal):
        scoring.rate({"sugar": 30})


def test_rating_not_configured(monkeypatch):
    monkeypatch.setattr(settings, "ML_MODEL_API_URL", None)
    with pytest.raises(Internal):
        scoring.rate({})
