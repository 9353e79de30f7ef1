"""Pytest configuration and fixtures for kms-signer tests."""

import base64
import os
from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import AsyncMock

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, encode_dss_signature
from kms_signer import config
from kms_signer.models import BackendKind


ENV_PREFIXES = ("AZURE_", "GCP_KMS_", "VAULT_", "KMS_SIGNER_")

ECDSA_PREHASHED = ec.ECDSA(Prehashed(hashes.SHA256()))


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Isolate tests from signer settings present in the process environment."""
    for name in list(os.environ):
        if name.startswith(ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(os.path.dirname(__file__))
    config._settings = None
    yield
    config._settings = None


@pytest.fixture
def secp256k1_key() -> ec.EllipticCurvePrivateKey:
    """Fresh secp256k1 private key."""
    return ec.generate_private_key(ec.SECP256K1())


@pytest.fixture
def ed25519_key() -> ed25519.Ed25519PrivateKey:
    """Fresh ed25519 private key."""
    return ed25519.Ed25519PrivateKey.generate()


@pytest.fixture
def secp256k1_pem(secp256k1_key: ec.EllipticCurvePrivateKey) -> str:
    """PEM-armored SPKI public key, as returned by the cloud KMS."""
    return (
        secp256k1_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )


@pytest.fixture
def secp256k1_vault_jwk(secp256k1_key: ec.EllipticCurvePrivateKey) -> dict[str, Any]:
    """JSON Web Key in the HSM vault's shape: proprietary enums, raw byte coordinates."""
    numbers = secp256k1_key.public_key().public_numbers()
    return {
        "kty": "EC-HSM",
        "crv": "P-256K",
        "x": numbers.x.to_bytes(32, "big"),
        "y": numbers.y.to_bytes(32, "big"),
    }


@pytest.fixture
def ed25519_raw_public(ed25519_key: ed25519.Ed25519PrivateKey) -> bytes:
    """Raw 32-byte ed25519 public key."""
    return ed25519_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


@pytest.fixture
def transit_key_document(ed25519_raw_public: bytes) -> dict[str, Any]:
    """``data`` object of a transit ``GET /keys/{name}`` response."""
    return {
        "name": "hedera-key",
        "type": "ed25519",
        "latest_version": 1,
        "keys": {
            "1": {
                "name": "ed25519",
                "public_key": base64.b64encode(ed25519_raw_public).decode("ascii"),
                "creation_time": "2024-01-01T00:00:00Z",
            }
        },
    }


@pytest.fixture
def der_sign(secp256k1_key: ec.EllipticCurvePrivateKey) -> Callable[[bytes], bytes]:
    """Sign a 32-byte digest the way a remote secp256k1 backend does (DER output)."""

    def _sign(digest: bytes) -> bytes:
        return secp256k1_key.sign(digest, ECDSA_PREHASHED)

    return _sign


@pytest.fixture
def verify_raw(secp256k1_key: ec.EllipticCurvePrivateKey) -> Callable[[bytes, bytes], None]:
    """Verify a raw ``r || s`` signature over a digest; raises InvalidSignature on mismatch."""

    def _verify(signature: bytes, digest: bytes) -> None:
        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:], "big")
        secp256k1_key.public_key().verify(encode_dss_signature(r, s), digest, ECDSA_PREHASHED)

    return _verify


class FakeBackend:
    """In-memory backend double with call-counting async operations."""

    def __init__(self, kind: BackendKind, public_key: Any, sign: Any) -> None:
        self.kind = kind
        self.fetch_public_key = AsyncMock(return_value=public_key)
        if callable(sign):
            self.sign = AsyncMock(side_effect=sign)
        else:
            self.sign = AsyncMock(return_value=sign)
        self.close = AsyncMock()


@pytest.fixture
def azure_backend(
    secp256k1_vault_jwk: dict[str, Any], der_sign: Callable[[bytes], bytes]
) -> FakeBackend:
    """HSM vault double returning the vault JWK and DER signatures."""
    return FakeBackend(
        BackendKind.HSM_VAULT,
        secp256k1_vault_jwk,
        lambda key_id, prepared: der_sign(prepared),
    )


@pytest.fixture
def gcp_backend(secp256k1_pem: str, der_sign: Callable[[bytes], bytes]) -> FakeBackend:
    """Cloud KMS double returning PEM and DER signatures."""
    return FakeBackend(
        BackendKind.CLOUD_KMS,
        secp256k1_pem,
        lambda key_id, prepared: der_sign(prepared),
    )


@pytest.fixture
def transit_backend(
    transit_key_document: dict[str, Any], ed25519_key: ed25519.Ed25519PrivateKey
) -> FakeBackend:
    """Transit engine double returning the key document and composite signatures."""

    def _sign(key_id: str, prepared: bytes) -> str:
        encoded = base64.b64encode(ed25519_key.sign(prepared)).decode("ascii")
        return f"vault:v1:{encoded}"

    return FakeBackend(BackendKind.SECRET_TRANSIT, transit_key_document, _sign)


@pytest.fixture
def make_backend() -> type[FakeBackend]:
    """Factory for custom backend doubles."""
    return FakeBackend
