"""Iute HTTP handlers: FastAPI routes for callbacks, manual sync and mappings.

Each callback handler:
1. Reads the raw body once (needed for RSA verification)
2. Verifies the Iute signature (hard gate, nothing runs on failure)
3. Parses ``orderId`` from the same bytes
4. Syncs the order and returns the ``SyncResult``

Status codes:
- 401 missing header or bad signature
- 503 Iute public key unavailable
- 400 verified body without a usable ``orderId``
- 502 Iute or Shopify call failed
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from iute_sync.errors import (
    CommerceError,
    IuteSyncError,
    KeyFetchError,
    MissingHeaderError,
    ProviderUnavailableError,
    SignatureInvalidError,
)
from iute_sync.webhooks.verification import WebhookEnvelope

if TYPE_CHECKING:
    from iute_sync.app import Services

logger = logging.getLogger(__name__)


class ProductMapping(BaseModel):
    """One Iute loan product ↔ shop SKU mapping."""

    productId: str = Field(description="Iute loan product id")
    sku: str = Field(description="Shop product SKU")


def _services(request: Request) -> Services:
    return request.app.state.services


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"ok": False, "error": message}, status_code=status_code)


def _status_for(exc: IuteSyncError) -> int:
    if isinstance(exc, (MissingHeaderError, SignatureInvalidError)):
        return 401
    if isinstance(exc, KeyFetchError):
        return 503
    if isinstance(exc, (ProviderUnavailableError, CommerceError)):
        return 502
    return 500


def _log_webhook(route: str, order_id: str, status: str) -> None:
    logger.info("WEBHOOK_AUDIT route=%s order=%s status=%s", route, order_id, status)


def _extract_order_id(body: bytes) -> str | None:
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    order_id = payload.get("orderId")
    if order_id is None or isinstance(order_id, (dict, list, bool)):
        return None
    order_id = str(order_id).strip()
    return order_id or None


async def _handle_callback(request: Request, route: str) -> JSONResponse:
    start = time.time()
    services = _services(request)

    body = await request.body()
    envelope = WebhookEnvelope(body=body, headers=dict(request.headers))

    try:
        await run_in_threadpool(services.verifier.verify, envelope, services.settings.iute_domain)
    except IuteSyncError as e:
        _log_webhook(route, "unknown", type(e).__name__)
        return _error(_status_for(e), e.message)

    order_id = _extract_order_id(body)
    if order_id is None:
        _log_webhook(route, "unknown", "missing_order_id")
        return _error(400, "Missing orderId in payload")

    try:
        result = await run_in_threadpool(services.orchestrator.sync_one, order_id)
    except IuteSyncError as e:
        logger.warning("Iute callback sync failed for %s: %s", order_id, e.message)
        _log_webhook(route, order_id, "sync_failed")
        return _error(_status_for(e), e.message)

    _log_webhook(route, order_id, "synced" if result.success else "order_not_found")
    logger.debug("Callback processed in %.1fms: %s", (time.time() - start) * 1000, route)
    return JSONResponse({"ok": True, "result": result.to_dict()})


async def _proxy(fn: Any, *args: Any, wrap: bool = False) -> JSONResponse:
    try:
        data = await run_in_threadpool(fn, *args)
    except IuteSyncError as e:
        logger.warning("Iute management call failed: %s", e.message)
        return _error(_status_for(e), e.message)
    return JSONResponse({"ok": True, "data": data} if wrap else data)


def register_iute_routes(app: FastAPI) -> None:
    """Register the Iute routes on the FastAPI app."""

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.post("/iute/confirm")
    async def iute_confirm(request: Request):
        """Iute userConfirmationUrl callback (signature-verified)."""
        return await _handle_callback(request, "confirm")

    @app.post("/iute/cancel")
    async def iute_cancel(request: Request):
        """Iute userCancelUrl callback (signature-verified)."""
        return await _handle_callback(request, "cancel")

    @app.get("/iute/status/{order_id}")
    async def iute_status(request: Request, order_id: str):
        """Manual status sync, useful for debugging."""
        services = _services(request)
        try:
            result = await run_in_threadpool(services.orchestrator.sync_one, order_id)
        except IuteSyncError as e:
            return _error(_status_for(e), e.message)
        return {"ok": True, "result": result.to_dict()}

    @app.get("/iute/loan-products")
    async def loan_products(request: Request):
        return await _proxy(_services(request).iute.list_loan_products)

    @app.get("/iute/mappings")
    async def list_mappings(request: Request):
        return await _proxy(_services(request).iute.list_product_mappings)

    @app.post("/iute/mappings")
    async def upsert_mappings(request: Request, mappings: list[ProductMapping]):
        payload = [m.model_dump() for m in mappings]
        return await _proxy(_services(request).iute.upsert_product_mappings, payload, wrap=True)

    @app.delete("/iute/mappings")
    async def delete_mappings(request: Request, mappings: list[ProductMapping]):
        payload = [m.model_dump() for m in mappings]
        return await _proxy(_services(request).iute.delete_product_mappings, payload, wrap=True)

    logger.info("Iute routes registered: /iute/{confirm,cancel,status,loan-products,mappings}")
