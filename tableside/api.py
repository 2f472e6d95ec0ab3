import logging
import mimetypes
import os

import requests
from requests import RequestException

from . import config

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class KuringClient:
    """Thin client for the ordering REST API.

    Every response is the ``{"data": ...}`` / ``{"error": {"message": ...}}``
    envelope; ``data`` is returned and errors raise ``ApiError``.
    """

    def __init__(self, base_url=None, token=None, session=None, timeout=None):
        self.base_url = (base_url or config.KURING_API_BASE_URL).rstrip("/")
        self.token = token if token is not None else (config.KURING_API_TOKEN or None)
        self.session = session or requests.Session()
        self.timeout = timeout or config.KURING_API_TIMEOUT

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}/api/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except RequestException as e:
            raise ApiError(f"Request failed: {e}")
        try:
            body = resp.json()
        except ValueError:
            body = {"raw": resp.text}

        error = body.get("error") if isinstance(body, dict) else None
        if error or not 200 <= resp.status_code < 300:
            message = (error or {}).get("message") if isinstance(error, dict) else error
            raise ApiError(message or f"HTTP {resp.status_code}", status_code=resp.status_code)
        return body.get("data") if isinstance(body, dict) and "data" in body else body

    # orders
    def create_order(self, payload: dict) -> dict:
        return self._request("POST", "order", json=payload)

    def get_order(self, order_id) -> dict:
        return self._request("GET", "order", params={"id": order_id})

    def get_payment_status(self, order_id) -> dict:
        return self._request("GET", f"orders/{order_id}/payment-status")

    def get_order_status(self, order_id) -> dict:
        return self._request("GET", f"orders/{order_id}/status")

    def validate_promo(self, code, order_total) -> dict:
        return self._request("POST", "promo/validate", json={"code": code, "order_total": order_total})

    # payments
    def create_payment(self, order_id, method, bank_code=None, amount=None) -> dict:
        payload = {"order_id": order_id, "method": method}
        if bank_code:
            payload["bank_code"] = bank_code
        if amount is not None:
            payload["amount"] = amount
        return self._request("POST", "payments", json=payload)

    def get_payment(self, transaction_id) -> dict:
        return self._request("GET", "payments", params={"transaction_id": transaction_id})

    def get_transaction_status(self, transaction_id) -> dict:
        return self._request("GET", f"payments/{transaction_id}/status")

    def upload_proof(self, order_id, payment_id, fileobj, filename, content_type=None) -> dict:
        content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        files = {"file": (os.path.basename(filename), fileobj, content_type)}
        data = {"order_id": order_id, "payment_id": payment_id}
        logger.info("Uploading payment proof %s for order %s", filename, order_id)
        return self._request("POST", "upload/proof", data=data, files=files)
