"""Sync orchestrator: one Iute order id in, one ``SyncResult`` out.

Steps per order:
1. Fetch the current loan application status from Iute
2. Resolve the Shopify order by its ``IUTE_ORDER_ID:<id>`` tag
3. Normalize the status and look up the order action
4. Apply the action (note, cancel, tag)

"Order not found" is returned, never raised. Provider and commerce
failures propagate to the caller. Syncs of the same order id are
serialized within the process.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any, Iterator, Protocol, runtime_checkable

from iute_sync.status import (
    CANCEL_REASON,
    CanonicalStatus,
    OrderAction,
    action_for,
    extract_status_text,
    normalize_text,
    status_note,
)
from iute_sync.tools.shopify_client import OrderRef

logger = logging.getLogger(__name__)

ORDER_NOT_FOUND = "order not found"


@runtime_checkable
class LoanStatusSource(Protocol):
    def get_loan_application_status(self, order_id: str) -> dict[str, Any]: ...


@runtime_checkable
class CommerceGateway(Protocol):
    def find_order_by_tag(self, provider_order_id: str) -> OrderRef | None: ...

    def add_tags(self, order_id: str, tags: list[str]) -> None: ...

    def update_note(self, order_id: str, note: str) -> None: ...

    def cancel_order(self, order_id: str, reason: str = ..., staff_note: str | None = ...) -> None: ...


@dataclass(frozen=True)
class SyncResult:
    """Outcome of syncing one order."""

    success: bool
    order_id: str
    status: CanonicalStatus
    provider_status: str = ""
    reason: str | None = None
    commerce_order_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data


class _KeyedLocks:
    """Lock per order id, dropped once no sync holds or awaits it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            lock, holders = entry if entry is not None else (threading.Lock(), 0)
            self._locks[key] = (lock, holders + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                lock, holders = self._locks[key]
                if holders == 1:
                    del self._locks[key]
                else:
                    self._locks[key] = (lock, holders - 1)


class SyncOrchestrator:
    """Reconciles Iute loan status onto the matching Shopify order."""

    def __init__(self, provider: LoanStatusSource, commerce: CommerceGateway) -> None:
        self._provider = provider
        self._commerce = commerce
        self._locks = _KeyedLocks()

    def sync_one(self, provider_order_id: str) -> SyncResult:
        """Sync one Iute order id onto Shopify.

        Raises:
            ProviderUnavailableError: Status fetch failed.
            CommerceError: Order lookup or an order mutation failed.
        """
        with self._locks.hold(provider_order_id):
            try:
                return self._sync_locked(provider_order_id)
            except Exception:
                logger.info("SYNC_AUDIT order=%s status=- outcome=failed", provider_order_id)
                raise

    def _sync_locked(self, provider_order_id: str) -> SyncResult:
        payload = self._provider.get_loan_application_status(provider_order_id)
        status_text = extract_status_text(payload)
        status = normalize_text(status_text)

        order = self._commerce.find_order_by_tag(provider_order_id)
        if order is None:
            _audit(provider_order_id, status, "order_not_found")
            return SyncResult(
                success=False,
                order_id=provider_order_id,
                status=status,
                provider_status=status_text,
                reason=ORDER_NOT_FOUND,
            )

        self._apply(order, action_for(status), status_text)
        _audit(provider_order_id, status, "ok")
        return SyncResult(
            success=True,
            order_id=provider_order_id,
            status=status,
            provider_status=status_text,
            commerce_order_id=order.id,
        )

    def _apply(self, order: OrderRef, action: OrderAction, status_text: str) -> None:
        if action.is_noop:
            logger.info("No Shopify action for %s (Iute status %r)", order.id, status_text)
            return
        if action.annotate:
            self._commerce.update_note(order.id, status_note(status_text))
        if action.cancel:
            if order.cancelled:
                logger.info("Shopify order %s already cancelled, skipping cancel", order.id)
            else:
                self._commerce.cancel_order(
                    order.id, reason=CANCEL_REASON, staff_note=status_note(status_text)
                )
        if action.tag:
            self._commerce.add_tags(order.id, [action.tag])


def _audit(order_id: str, status: CanonicalStatus, outcome: str) -> None:
    logger.info("SYNC_AUDIT order=%s status=%s outcome=%s", order_id, status.value, outcome)
