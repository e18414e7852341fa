"""Iute webhook signature verification: RSA-SHA256 over body + timestamp.

Security contract:
- Signed message = exact raw body bytes + UTF-8 timestamp header, no separator
- Signature header is base64; verified with PKCS#1 v1.5 padding and SHA-256
- Header lookup is case-insensitive
- Missing headers fail before the public key is fetched
- Verification completes (or raises) before any side effect on the order
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Mapping

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from iute_sync.errors import MissingHeaderError, SignatureInvalidError
from iute_sync.webhooks.keys import PublicKeyCache

logger = logging.getLogger(__name__)

TIMESTAMP_HEADER = "x-iute-timestamp"
SIGNATURE_HEADER = "x-iute-signature"


@dataclass(frozen=True)
class WebhookEnvelope:
    """Inbound notification exactly as received.

    ``body`` is the only body representation: it is both verified and
    parsed, never re-serialized in between.
    """

    body: bytes
    headers: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def timestamp(self) -> str | None:
        return self.header(TIMESTAMP_HEADER)

    @property
    def signature(self) -> str | None:
        return self.header(SIGNATURE_HEADER)


def signed_message(body: bytes, timestamp: str) -> bytes:
    """Build the byte string the provider signs."""
    return body + timestamp.encode("utf-8")


class WebhookVerifier:
    """Verifies inbound Iute notifications against the cached public key."""

    def __init__(self, key_cache: PublicKeyCache) -> None:
        self._key_cache = key_cache

    def verify(self, envelope: WebhookEnvelope, domain: str) -> None:
        """Raise unless ``envelope`` carries a valid provider signature.

        Raises:
            MissingHeaderError: Timestamp or signature header absent.
            KeyFetchError: Public key could not be obtained.
            SignatureInvalidError: Signature does not verify.
        """
        timestamp = envelope.timestamp
        if not timestamp:
            raise MissingHeaderError(TIMESTAMP_HEADER)
        signature_b64 = envelope.signature
        if not signature_b64:
            raise MissingHeaderError(SIGNATURE_HEADER)

        try:
            signature = base64.b64decode(signature_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SignatureInvalidError("Signature header is not valid base64") from e

        signing_key = self._key_cache.get_key(domain)
        public_key = signing_key.rsa_key()

        try:
            public_key.verify(
                signature,
                signed_message(envelope.body, timestamp),
                padding.PKCS1v15(),
                hashes.SHA256(),
            )
        except InvalidSignature as e:
            logger.warning("Iute webhook signature rejected (timestamp=%s)", timestamp)
            raise SignatureInvalidError("Signature verification failed") from e
