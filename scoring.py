import logging
from typing import Any, Dict

import requests

import settings
from errors import Internal

logger = logging.getLogger(__name__)


def rate(nutritional_info: Dict[str, Any]) -> Dict[str, Any]:
    """Ask the ML service for a rating and the diseases it associates with the product."""
    if not settings.ML_MODEL_API_URL:
        raise Internal("Rating service is not configured")
    try:
        resp = requests.post(settings.ML_MODEL_API_URL, json=nutritional_info or {}, timeout=settings.ML_MODEL_TIMEOUT)
        resp.raise_for_status()
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Rating service call failed: %s", e)
        raise Internal("Failed to fetch product rating from ML model")
    if not isinstance(data, dict) or data.get("rating") is None:
        logger.error("Rating service returned an unexpected body: %r", data)
        raise Internal("Invalid response from ML model")
    return {"rating": data["rating"], "diseases": data.get("predicted_disease") or []}
