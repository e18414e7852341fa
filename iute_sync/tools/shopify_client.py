"""Shopify GraphQL Admin API client for order tagging, notes and cancellation.

Orders are linked to Iute out-of-band with a ``IUTE_ORDER_ID:<id>`` tag.
All mutations used here converge on repeat: ``tagsAdd`` has set semantics
and ``orderUpdate`` overwrites the note.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from iute_sync.errors import CommerceMutationError, CommerceUnavailableError

logger = logging.getLogger(__name__)

ORDER_TAG_PREFIX = "IUTE_ORDER_ID"


def correlation_tag(provider_order_id: str) -> str:
    return f"{ORDER_TAG_PREFIX}:{provider_order_id}"


@dataclass(frozen=True)
class OrderRef:
    """Shopify order resolved from its Iute correlation tag."""

    id: str
    name: str = ""
    tags: tuple[str, ...] = field(default_factory=tuple)
    cancelled: bool = False
    financial_status: str | None = None
    fulfillment_status: str | None = None

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> OrderRef:
        return cls(
            id=node["id"],
            name=node.get("name") or "",
            tags=tuple(node.get("tags") or ()),
            cancelled=bool(node.get("cancelledAt")),
            financial_status=node.get("displayFinancialStatus"),
            fulfillment_status=node.get("displayFulfillmentStatus"),
        )


_FIND_ORDER_QUERY = """
query ($q: String!) {
  orders(first: 1, query: $q) {
    edges {
      node {
        id
        name
        cancelledAt
        displayFinancialStatus
        displayFulfillmentStatus
        tags
      }
    }
  }
}
"""

_TAGS_ADD_MUTATION = """
mutation ($id: ID!, $tags: [String!]!) {
  tagsAdd(id: $id, tags: $tags) {
    userErrors { field message }
  }
}
"""

_ORDER_UPDATE_MUTATION = """
mutation ($id: ID!, $note: String!) {
  orderUpdate(input: {id: $id, note: $note}) {
    order { id }
    userErrors { field message }
  }
}
"""

_ORDER_CANCEL_MUTATION = """
mutation ($id: ID!, $reason: OrderCancelReason!, $staffNote: String) {
  orderCancel(orderId: $id, reason: $reason, staffNote: $staffNote, refund: false, restock: false) {
    job { id }
    orderCancelUserErrors { field message }
  }
}
"""


class ShopifyClient:
    """Synchronous GraphQL Admin API client for one shop."""

    def __init__(
        self,
        shop: str,
        access_token: str,
        api_version: str = "2025-01",
        http: httpx.Client | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.endpoint = f"https://{shop}/admin/api/{api_version}/graphql.json"
        self._access_token = access_token
        self._http = http or httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def _graphql_request(self, query: str, variables: dict | None = None) -> dict:
        """Execute a GraphQL request and return its ``data`` member."""
        try:
            response = self._http.post(
                self.endpoint,
                json={"query": query, "variables": variables or {}},
                headers={
                    "X-Shopify-Access-Token": self._access_token,
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            raise CommerceUnavailableError(f"Shopify request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_error or not isinstance(body, dict) or body.get("errors"):
            detail = body.get("errors") if isinstance(body, dict) else response.text[:500]
            raise CommerceUnavailableError(
                f"Shopify GraphQL error: {detail or response.status_code}",
                status_code=response.status_code,
            )
        return body.get("data") or {}

    @staticmethod
    def _check_user_errors(mutation: str, payload: dict | None, key: str = "userErrors") -> None:
        errors = (payload or {}).get(key) or []
        if errors:
            raise CommerceMutationError(mutation, errors)

    def find_order_by_tag(self, provider_order_id: str) -> OrderRef | None:
        """Return the order tagged ``IUTE_ORDER_ID:<id>``, or None."""
        data = self._graphql_request(
            _FIND_ORDER_QUERY, {"q": f"tag:{correlation_tag(provider_order_id)}"}
        )
        edges = (data.get("orders") or {}).get("edges") or []
        if not edges:
            return None
        return OrderRef.from_node(edges[0]["node"])

    def add_tags(self, order_id: str, tags: list[str]) -> None:
        data = self._graphql_request(_TAGS_ADD_MUTATION, {"id": order_id, "tags": tags})
        self._check_user_errors("tagsAdd", data.get("tagsAdd"))
        logger.info("Shopify tags added to %s: %s", order_id, ", ".join(tags))

    def update_note(self, order_id: str, note: str) -> None:
        data = self._graphql_request(_ORDER_UPDATE_MUTATION, {"id": order_id, "note": note})
        self._check_user_errors("orderUpdate", data.get("orderUpdate"))
        logger.info("Shopify note updated on %s", order_id)

    def cancel_order(self, order_id: str, reason: str = "CUSTOMER", staff_note: str | None = None) -> None:
        data = self._graphql_request(
            _ORDER_CANCEL_MUTATION,
            {"id": order_id, "reason": reason, "staffNote": staff_note},
        )
        self._check_user_errors("orderCancel", data.get("orderCancel"), key="orderCancelUserErrors")
        logger.info("Shopify order %s cancelled (reason=%s)", order_id, reason)
