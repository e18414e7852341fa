"""Shared fixtures for the Iute sync test suite."""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from iute_sync.tools.shopify_client import OrderRef

ORDER_GID = "gid://shopify/Order/1001"


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_pem(rsa_private_key) -> str:
    """PEM the Iute key endpoint would serve."""
    return (
        rsa_private_key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


@pytest.fixture(scope="session")
def other_public_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return (
        key.public_key()
        .public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


@pytest.fixture(scope="session")
def sign(rsa_private_key):
    """Factory: base64 signature over body + timestamp, as Iute computes it."""

    def _sign(body: bytes, timestamp: str) -> str:
        signature = rsa_private_key.sign(
            body + timestamp.encode("utf-8"),
            padding.PKCS1v15(),
            hashes.SHA256(),
        )
        return base64.b64encode(signature).decode()

    return _sign


@pytest.fixture
def key_fetcher(public_pem) -> MagicMock:
    return MagicMock(return_value=public_pem)


@pytest.fixture
def order() -> OrderRef:
    return OrderRef(id=ORDER_GID, name="#1001", tags=("IUTE_ORDER_ID:42",))


@pytest.fixture
def provider() -> MagicMock:
    mock = MagicMock()
    mock.get_loan_application_status.return_value = {"status": "PENDING"}
    return mock


@pytest.fixture
def commerce(order) -> MagicMock:
    mock = MagicMock()
    mock.find_order_by_tag.return_value = order
    return mock
