"""Value objects shared by the codecs, backends and signing adapter."""

from __future__ import annotations

from enum import Enum

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from pydantic import BaseModel, Field, model_validator

from kms_signer.exceptions import KeyFormatError


class BackendKind(str, Enum):
    """Remote key-custody backends."""

    HSM_VAULT = "hsm-vault"
    CLOUD_KMS = "cloud-kms"
    SECRET_TRANSIT = "secret-transit"


class Curve(str, Enum):
    """Signing curves understood by the consuming ledger protocol."""

    SECP256K1 = "secp256k1"
    ED25519 = "ed25519"

    @property
    def signature_size(self) -> int:
        """Width in bytes of a canonical signature on this curve."""
        return 64

    @property
    def component_size(self) -> int:
        """Width in bytes of one scalar component (r, s or the public key)."""
        return 32


class SignatureLayout(str, Enum):
    """How a backend lays out secp256k1 signature bytes.

    ``auto`` inspects each response: a blob of exactly the curve's signature
    width that is not a well-formed DER SEQUENCE is taken as raw ``r || s``.
    """

    DER = "der"
    RAW = "raw"
    AUTO = "auto"


SUPPORTED_CURVES: dict[BackendKind, frozenset[Curve]] = {
    BackendKind.HSM_VAULT: frozenset({Curve.SECP256K1}),
    BackendKind.CLOUD_KMS: frozenset({Curve.SECP256K1}),
    BackendKind.SECRET_TRANSIT: frozenset({Curve.ED25519}),
}

DEFAULT_CURVES: dict[BackendKind, Curve] = {
    BackendKind.HSM_VAULT: Curve.SECP256K1,
    BackendKind.CLOUD_KMS: Curve.SECP256K1,
    BackendKind.SECRET_TRANSIT: Curve.ED25519,
}


class SigningKeyHandle(BaseModel):
    """Immutable reference to a remote signing key."""

    backend: BackendKind
    key_id: str = Field(..., min_length=1, description="URI, resource path or key name")
    curve: Curve
    key_version: str | None = Field(default=None, description="Backend key version, if any")

    class Config:
        """Pydantic configuration."""

        frozen = True

    @model_validator(mode="after")
    def validate_curve_for_backend(self) -> SigningKeyHandle:
        """Reject curves the selected backend cannot sign with.

        Raises:
            KeyFormatError: If the backend does not support the declared curve
        """
        if self.curve not in SUPPORTED_CURVES[self.backend]:
            raise KeyFormatError(
                f"Backend {self.backend.value} does not support curve {self.curve.value}",
                {"backend": self.backend.value, "curve": self.curve.value},
            )
        return self

    def __str__(self) -> str:
        """Return a short identifier suitable for log lines."""
        if self.key_version:
            return f"{self.backend.value}:{self.key_id}@{self.key_version}"
        return f"{self.backend.value}:{self.key_id}"


class CanonicalPublicKey(BaseModel):
    """A public key in SubjectPublicKeyInfo DER encoding plus its curve tag."""

    der: bytes
    curve: Curve

    class Config:
        """Pydantic configuration."""

        frozen = True

    def hex(self) -> str:
        """Hex-encoded SPKI DER, as accepted by the ledger key constructor."""
        return self.der.hex()

    def load(self) -> ec.EllipticCurvePublicKey | ed25519.Ed25519PublicKey:
        """Parse the DER back into a ``cryptography`` public key object."""
        key = serialization.load_der_public_key(self.der)
        if not isinstance(key, (ec.EllipticCurvePublicKey, ed25519.Ed25519PublicKey)):
            raise KeyFormatError(f"Unexpected key type {type(key).__name__}")
        return key

    def raw(self) -> bytes:
        """Raw key bytes: 32 bytes for ed25519, a compressed point for secp256k1."""
        if self.curve is Curve.ED25519:
            return self.load().public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
        return self.load().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.CompressedPoint,
        )

    def for_protocol(self) -> str | bytes:
        """Key in the form the ledger client takes for this curve."""
        if self.curve is Curve.ED25519:
            return self.raw()
        return self.hex()
