"""Iute signing public key cache.

One ``PublicKeyCache`` is built at process start and shared by reference
with every verifier. Entries are keyed by provider domain and replaced by
a single reference swap, so readers always see a complete
(material, parsed key, fetched_at) entry.

The lock only guards the staleness check and the swap; the network fetch
runs outside it. Two concurrent misses may both fetch; the entry with the
later fetch instant is kept. Material that does not parse as an RSA public
key is rejected before the swap and never cached.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from iute_sync.errors import KeyFetchError

logger = logging.getLogger(__name__)

DEFAULT_KEY_TTL = timedelta(hours=1)

KeyFetcher = Callable[[str], str]


def load_public_key(material: str) -> rsa.RSAPublicKey:
    """Parse PEM ``material`` into an RSA public key.

    Raises:
        KeyFetchError: Material is not a PEM public key, or not an RSA one.
    """
    try:
        key = serialization.load_pem_public_key(material.encode("utf-8"))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyFetchError(f"Unusable Iute public key: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyFetchError("Iute public key is not an RSA key")
    return key


@dataclass(frozen=True)
class SigningKey:
    """PEM-encoded provider public key with its fetch instant."""

    material: str
    fetched_at: datetime
    ttl: timedelta = DEFAULT_KEY_TTL
    public_key: rsa.RSAPublicKey | None = field(default=None, compare=False, repr=False)

    def is_fresh(self, now: datetime) -> bool:
        return now - self.fetched_at < self.ttl

    def rsa_key(self) -> rsa.RSAPublicKey:
        if self.public_key is not None:
            return self.public_key
        return load_public_key(self.material)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PublicKeyCache:
    """Thread-safe, per-domain cache of the provider's signing key.

    Args:
        fetcher: ``fetcher(domain) -> pem`` that downloads the key, raising
            ``KeyFetchError`` when the provider does not answer with success.
        ttl: How long a fetched key stays usable.
    """

    def __init__(self, fetcher: KeyFetcher, ttl: timedelta = DEFAULT_KEY_TTL) -> None:
        self._fetcher = fetcher
        self._ttl = ttl
        self._lock = threading.Lock()
        self._keys: dict[str, SigningKey] = {}

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def peek(self, domain: str) -> SigningKey | None:
        """Return the cached entry for ``domain`` without fetching."""
        with self._lock:
            return self._keys.get(domain)

    def get_key(self, domain: str) -> SigningKey:
        """Return a usable key for ``domain``, fetching on miss or expiry.

        Raises:
            KeyFetchError: If the key is missing or stale and the fetch fails.
        """
        with self._lock:
            cached = self._keys.get(domain)
            if cached is not None and cached.is_fresh(_utcnow()):
                return cached

        fetched_at = _utcnow()
        material = self._fetcher(domain)
        if not material or not material.strip():
            raise KeyFetchError(f"Empty public key returned by {domain}")
        try:
            public_key = load_public_key(material)
        except KeyFetchError:
            logger.warning("Iute public key from %s rejected, keeping previous entry", domain)
            raise

        key = SigningKey(material=material, fetched_at=fetched_at, ttl=self._ttl, public_key=public_key)
        with self._lock:
            current = self._keys.get(domain)
            # Keep a concurrently stored newer entry
            stored = current is None or current.fetched_at <= key.fetched_at
            if stored:
                self._keys[domain] = key
            else:
                key = current

        if stored:
            logger.info("Iute public key refreshed for %s (ttl=%ss)", domain, int(self._ttl.total_seconds()))
        return key

    def invalidate(self, domain: str | None = None) -> None:
        """Drop one domain's key, or every key when ``domain`` is None."""
        with self._lock:
            if domain is None:
                self._keys.clear()
            else:
                self._keys.pop(domain, None)
