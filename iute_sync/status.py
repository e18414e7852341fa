"""Iute loan status normalization and the status -> Shopify action table.

The provider's status payload is loosely structured JSON. It is reduced to
a ``CanonicalStatus`` here and nowhere else; downstream code never sees
the raw mapping.

The action table is not a transition table: every sync recomputes the
target action from the current provider status alone, so applying the
same status twice converges to the same order state (tags are sets).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# Field names probed in order; first present non-empty value wins
_STATUS_FIELDS = ("status", "applicationStatus", "state")

STATUS_TAG_PREFIX = "IUTE_STATUS"
CANCEL_REASON = "CUSTOMER"


class CanonicalStatus(str, Enum):
    """Closed set of loan application states the sync reasons about."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


_ALIASES: dict[str, CanonicalStatus] = {
    "PENDING": CanonicalStatus.PENDING,
    "IN PROGRESS": CanonicalStatus.IN_PROGRESS,
    "IN_PROGRESS": CanonicalStatus.IN_PROGRESS,
    "PAID": CanonicalStatus.PAID,
    "SIGNED": CanonicalStatus.PAID,
    "APPROVED": CanonicalStatus.PAID,
    "CANCELLED": CanonicalStatus.CANCELLED,
    "CANCELED": CanonicalStatus.CANCELLED,
}


def extract_status_text(payload: Any) -> str:
    """Pull the raw status string out of a provider payload, upper-cased.

    Returns an empty string when the payload is not a mapping or none of
    the probed fields carries a value.
    """
    if not isinstance(payload, dict):
        return ""
    for name in _STATUS_FIELDS:
        value = payload.get(name)
        if not value:
            continue
        return str(value).upper()
    return ""


def normalize_text(text: str) -> CanonicalStatus:
    return _ALIASES.get(text.upper(), CanonicalStatus.UNKNOWN)


def normalize(payload: Any) -> CanonicalStatus:
    """Map a raw provider status payload to a ``CanonicalStatus``.

    Never raises: absent, garbage or unrecognised input yields UNKNOWN.
    """
    return normalize_text(extract_status_text(payload))


@dataclass(frozen=True)
class OrderAction:
    """Commerce-side effect for one canonical status.

    Applied in a fixed order: note, then cancel, then tag.
    """

    tag: str | None = None
    annotate: bool = False
    cancel: bool = False

    @property
    def is_noop(self) -> bool:
        return self.tag is None and not self.annotate and not self.cancel


def status_tag(status: CanonicalStatus) -> str:
    return f"{STATUS_TAG_PREFIX}:{status.value}"


_ACTIONS: dict[CanonicalStatus, OrderAction] = {
    CanonicalStatus.PENDING: OrderAction(tag=status_tag(CanonicalStatus.PENDING)),
    CanonicalStatus.IN_PROGRESS: OrderAction(tag=status_tag(CanonicalStatus.IN_PROGRESS)),
    CanonicalStatus.PAID: OrderAction(tag=status_tag(CanonicalStatus.PAID), annotate=True),
    CanonicalStatus.CANCELLED: OrderAction(
        tag=status_tag(CanonicalStatus.CANCELLED), cancel=True
    ),
    CanonicalStatus.UNKNOWN: OrderAction(),
}


def action_for(status: CanonicalStatus) -> OrderAction:
    """Return the commerce action for a canonical status."""
    return _ACTIONS[status]


def status_note(status_text: str) -> str:
    """Human-readable note / staff note text carried onto the order."""
    return f"Iute status: {status_text}"
