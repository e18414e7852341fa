"""Iute e-shop management REST client.

Wraps the endpoints the sync service needs: the signing public key, loan
application status and the product-mapping management API. Every call is
a single attempt; the caller decides what a failure means.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from iute_sync.errors import KeyFetchError, ProviderUnavailableError

logger = logging.getLogger(__name__)

ADMIN_KEY_HEADER = "x-iute-admin-key"
PUBLIC_KEY_PATH = "/public-key.pem"
_MANAGEMENT_V1 = "/api/v1/eshop/management"
_MANAGEMENT_V2 = "/api/v2/eshop/management"

# Truncate upstream error bodies in exception messages
_MAX_ERROR_BODY = 500


class IuteClient:
    """Synchronous client bound to one Iute domain."""

    def __init__(
        self,
        domain: str,
        admin_key: str,
        http: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.domain = domain.rstrip("/")
        self._admin_key = admin_key
        self._http = http or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def _headers(self) -> dict[str, str]:
        return {"accept": "*/*", ADMIN_KEY_HEADER: self._admin_key}

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        url = f"{self.domain}{path}"
        try:
            response = self._http.request(
                method, url, params=params, json=json, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(f"Iute request failed: {method} {path}: {e}") from e
        if response.is_error:
            raise ProviderUnavailableError(
                f"Iute error {response.status_code} on {method} {path}: "
                f"{response.text[:_MAX_ERROR_BODY]}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, default: Any = None) -> Any:
        try:
            return response.json()
        except ValueError:
            if default is not None:
                return default
            raise ProviderUnavailableError(
                f"Iute returned non-JSON body for {response.request.url.path}",
                status_code=response.status_code,
            ) from None

    def fetch_public_key(self, domain: str | None = None) -> str:
        """Download the PEM signing key from ``domain`` (defaults to ours).

        Raises:
            KeyFetchError: On transport failure or a non-success status.
        """
        base = (domain or self.domain).rstrip("/")
        try:
            response = self._http.get(f"{base}{PUBLIC_KEY_PATH}")
        except httpx.HTTPError as e:
            raise KeyFetchError(f"Failed to download public key: {e}") from e
        if not response.is_success:
            raise KeyFetchError(
                f"Failed to download public key: {response.status_code}",
                status_code=response.status_code,
            )
        return response.text

    def get_loan_application_status(self, order_id: str) -> dict[str, Any]:
        """Fetch the raw loan application status payload for an order."""
        response = self._request(
            "GET",
            f"{_MANAGEMENT_V1}/loan-application-status",
            params={"orderId": order_id},
        )
        payload = self._json(response)
        if not isinstance(payload, dict):
            logger.warning("Unexpected Iute status payload type for %s: %s", order_id, type(payload).__name__)
            return {}
        return payload

    def list_loan_products(self) -> Any:
        return self._json(self._request("GET", f"{_MANAGEMENT_V1}/loan-product"))

    def list_product_mappings(self, size: int = 500) -> Any:
        return self._json(
            self._request("GET", f"{_MANAGEMENT_V1}/product-mapping", params={"size": size})
        )

    def upsert_product_mappings(self, mappings: list[dict[str, Any]]) -> Any:
        response = self._request(
            "POST", f"{_MANAGEMENT_V2}/product-mapping", params={"batch": "true"}, json=mappings
        )
        return self._json(response, default={})

    def delete_product_mappings(self, mappings: list[dict[str, Any]]) -> Any:
        response = self._request(
            "DELETE", f"{_MANAGEMENT_V2}/product-mapping", params={"batch": "true"}, json=mappings
        )
        return self._json(response, default={})
