"""
ImageKit client used for avatars and product images.

Uploads must succeed for the calling request to succeed. Releasing an old
image is best effort: failures are logged and never raised.
"""

import logging
import time
from typing import Dict, Optional

import requests

import settings
from errors import Internal, ValidationError

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://upload.imagekit.io/api/v1/files/upload"
FILES_URL = "https://api.imagekit.io/v1/files"
TIMEOUT = 15

USERS_FOLDER = "/users"
PRODUCTS_FOLDER = "/products"


def _auth():
    if not settings.IMAGEKIT_PRIVATE_KEY:
        raise Internal("Image hosting is not configured")
    return (settings.IMAGEKIT_PRIVATE_KEY, "")


def check_image(content: Optional[bytes], content_type: Optional[str], label: str = "Image") -> bytes:
    if not content:
        raise ValidationError(f"{label} is required")
    if not (content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError(f"{label} must be at most {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB")
    return content


def upload_image(content: bytes, name: str, folder: str) -> Dict[str, str]:
    file_name = f"{name}_{int(time.time() * 1000)}"
    try:
        resp = requests.post(
            UPLOAD_URL,
            auth=_auth(),
            files={"file": (file_name, content)},
            data={"fileName": file_name, "folder": folder},
            timeout=TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
    except requests.RequestException as e:
        logger.error("Image upload to %s failed: %s", folder, e)
        raise Internal("Failed to upload image")
    if not data.get("url"):
        raise Internal("Failed to upload image")
    return {"url": data["url"], "fileId": data.get("fileId")}


def find_file_id(url: Optional[str]) -> Optional[str]:
    """Look an uploaded file up by its name, for records that only kept the URL."""
    if not url:
        return None
    filename = url.rstrip("/").split("/")[-1].split("?")[0]
    resp = requests.get(FILES_URL, auth=_auth(), params={"searchQuery": f'name="{filename}"'}, timeout=TIMEOUT)
    resp.raise_for_status()
    files = resp.json()
    return files[0].get("fileId") if files else None


def delete_image(file_id: str) -> None:
    resp = requests.delete(f"{FILES_URL}/{file_id}", auth=_auth(), timeout=TIMEOUT)
    resp.raise_for_status()


def release_image(url: Optional[str], file_id: Optional[str] = None) -> bool:
    if not url and not file_id:
        return False
    try:
        file_id = file_id or find_file_id(url)
        if not file_id:
            logger.warning("No hosted file found for %s", url)
            return False
        delete_image(file_id)
        return True
    except (requests.RequestException, Internal) as e:
        logger.warning("Could not release image %s: %s", file_id or url, e)
        return False
