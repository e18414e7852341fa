"""Error taxonomy for the Iute ↔ Shopify status sync.

Verification errors are fatal to the single request that raised them.
Provider and commerce errors surface to the caller; the poll driver
isolates them per order id. "Order not found" is deliberately absent:
it is an expected outcome and travels as a failed ``SyncResult``.
"""

from __future__ import annotations


class IuteSyncError(Exception):
    """Base exception for all sync failures."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize sync error.

        Args:
            message: Error description
            status_code: Upstream HTTP status, when the failure came from one
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class VerificationError(IuteSyncError):
    """Base for inbound webhook authenticity failures."""


class MissingHeaderError(VerificationError):
    """Raised when a required signature header is absent."""

    def __init__(self, header: str) -> None:
        super().__init__(f"Missing {header} header")
        self.header = header


class KeyFetchError(VerificationError):
    """Raised when the provider's public key cannot be obtained or loaded."""


class SignatureInvalidError(VerificationError):
    """Raised when the RSA-SHA256 signature does not match the message."""


class ProviderUnavailableError(IuteSyncError):
    """Raised when a provider REST call fails."""


class CommerceError(IuteSyncError):
    """Base for commerce platform failures."""


class CommerceUnavailableError(CommerceError):
    """Raised on transport, HTTP or top-level GraphQL errors."""


class CommerceMutationError(CommerceError):
    """Raised when a GraphQL mutation reports userErrors."""

    def __init__(self, mutation: str, user_errors: list[dict]) -> None:
        detail = "; ".join(
            f"{'.'.join(e.get('field') or []) or '-'}: {e.get('message', '')}"
            for e in user_errors
        )
        super().__init__(f"{mutation} failed: {detail}")
        self.mutation = mutation
        self.user_errors = user_errors
