"""
Client for the barcode endpoints of the laundry REST API.

Every endpoint answers with an envelope:
    {"success": true, "data": {...}}
    {"success": false, "message": "..."}
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from . import config
from .exceptions import ApiError
from .logging_config import get_logger
from .print_label import ItemLabel

logger = get_logger(__name__)


class TagApiClient:
    """
    Fetch item labels, look up scanned codes and update item status.

    Args:
        base_url: API root, e.g. "https://api.example.com"
        token: Bearer token, sent when given
        timeout: Request timeout in seconds
        session: requests.Session to use (default: a new one)
    """

    def __init__(self, base_url: str = config.API_BASE_URL,
                 token: Optional[str] = config.API_TOKEN,
                 timeout: float = config.API_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"Request failed: {e}", url=url) from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            response_message = f"HTTP {response.status_code}: unexpected response body"
            raise ApiError(response_message, status_code=response.status_code, url=url)

        if not response.ok or not payload.get("success"):
            message = payload.get("message") or f"HTTP {response.status_code}"
            raise ApiError(message, status_code=response.status_code, url=url)

        return payload.get("data") or {}

    def fetch_labels(self, order_id: str) -> List[ItemLabel]:
        """Item labels of an order, in item order."""
        data = self._request("GET", f"/api/barcode/order/{quote(str(order_id), safe='')}/labels")
        labels = [ItemLabel.from_dict(record) for record in data.get("labels", [])]
        logger.info(f"Fetched {len(labels)} label(s) for order {order_id}")
        return labels

    def scan(self, code: str) -> Dict[str, Any]:
        """
        Look up a scanned order barcode or item tag code.

        Returns the raw ``data`` object, holding either "order" or "item".
        """
        code = code.strip()
        if not code:
            raise ValueError("Scan code is empty")
        return self._request("GET", f"/api/barcode/scan/{quote(code, safe='')}")

    def update_item_status(self, tag_code: str, status: str) -> Dict[str, Any]:
        """Set the processing status of an item by its tag code."""
        return self._request(
            "PUT", f"/api/barcode/scan-item/{quote(tag_code, safe='')}/status",
            json={"processingStatus": status},
        )
