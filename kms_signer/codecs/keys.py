"""Public-key normalization.

Each backend hands back its public key in a different shape: the HSM vault
returns a JSON Web Key with proprietary ``kty``/``crv`` values and raw byte
coordinates, the cloud KMS returns PEM-armored SPKI, and the transit engine
returns a base64 raw ed25519 key inside a document keyed by version. This
module turns all of them into a :class:`CanonicalPublicKey` holding SPKI DER.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from jwt.algorithms import ECAlgorithm
from jwt.exceptions import InvalidKeyError
from loguru import logger

from kms_signer.exceptions import KeyFormatError
from kms_signer.models import CanonicalPublicKey, Curve


# Vault-specific JWK enum values and their standard equivalents.
KTY_ALIASES: dict[str, str] = {"EC-HSM": "EC"}
CRV_ALIASES: dict[str, str] = {"P-256K": "secp256k1", "SECP256K1": "secp256k1"}

PEM_MARKER = "-----BEGIN"


def b64url(data: bytes) -> str:
    """URL-safe base64 encode without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bytes):
        return value.decode("ascii")
    return str(value)


def _spki_der(key: ec.EllipticCurvePublicKey | ed25519.Ed25519PublicKey) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class KeyMaterialCodec:
    """Convert backend-native public keys into SPKI DER.

    Args:
        transit_key_version: Version entry to read from a transit key document
    """

    def __init__(self, transit_key_version: str = "1") -> None:
        self.transit_key_version = transit_key_version

    def normalize(self, native_key: Any, curve: Curve) -> CanonicalPublicKey:
        """Normalize a backend public key.

        Args:
            native_key: JWK mapping, PEM text/bytes, SPKI DER bytes, transit key
                document or base64 raw ed25519 key
            curve: Curve declared on the key handle

        Returns:
            Canonical public key

        Raises:
            KeyFormatError: If the key cannot be parsed or is on the wrong curve
        """
        if curve is Curve.SECP256K1:
            key = self._load_secp256k1(native_key)
        elif curve is Curve.ED25519:
            key = self._load_ed25519(native_key)
        else:
            raise KeyFormatError(f"Unsupported curve: {curve}")

        canonical = CanonicalPublicKey(der=_spki_der(key), curve=curve)
        logger.debug(f"Normalized {curve.value} public key ({len(canonical.der)} DER bytes)")
        return canonical

    # secp256k1

    def _load_secp256k1(self, native_key: Any) -> ec.EllipticCurvePublicKey:
        if isinstance(native_key, Mapping):
            key = self._from_jwk(native_key)
        elif isinstance(native_key, (str, bytes)):
            key = self._from_spki(native_key)
        else:
            raise KeyFormatError(
                f"Unsupported secp256k1 key representation: {type(native_key).__name__}"
            )

        if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
            key.curve, ec.SECP256K1
        ):
            raise KeyFormatError(
                "Public key is not on secp256k1",
                {"key_type": type(key).__name__},
            )
        return key

    def _from_jwk(self, jwk: Mapping[str, Any]) -> Any:
        """Rewrite vault-specific JWK enums and parse with a generic JWK loader."""
        missing = [name for name in ("kty", "crv", "x", "y") if jwk.get(name) is None]
        if missing:
            raise KeyFormatError("JWK is missing required fields", {"missing": missing})

        kty = _text(jwk["kty"])
        crv = _text(jwk["crv"])
        standard = {
            "kty": KTY_ALIASES.get(kty, kty),
            "crv": CRV_ALIASES.get(crv, crv),
            "x": b64url(jwk["x"]) if isinstance(jwk["x"], bytes) else _text(jwk["x"]),
            "y": b64url(jwk["y"]) if isinstance(jwk["y"], bytes) else _text(jwk["y"]),
        }

        try:
            return ECAlgorithm.from_jwk(json.dumps(standard))
        except (InvalidKeyError, ValueError, TypeError) as exc:
            raise KeyFormatError(
                f"Invalid JSON Web Key: {exc}", {"kty": kty, "crv": crv}
            ) from exc

    def _from_spki(self, data: str | bytes) -> Any:
        raw = data.encode("ascii") if isinstance(data, str) else data
        try:
            if raw.lstrip().startswith(PEM_MARKER.encode("ascii")):
                return serialization.load_pem_public_key(raw)
            return serialization.load_der_public_key(raw)
        except (ValueError, UnsupportedAlgorithm) as exc:
            raise KeyFormatError(f"Invalid SPKI public key: {exc}") from exc

    # ed25519

    def _load_ed25519(self, native_key: Any) -> ed25519.Ed25519PublicKey:
        if isinstance(native_key, Mapping):
            native_key = self._from_transit_document(native_key)

        if isinstance(native_key, str):
            if native_key.lstrip().startswith(PEM_MARKER):
                key = self._from_spki(native_key)
                if not isinstance(key, ed25519.Ed25519PublicKey):
                    raise KeyFormatError("PEM public key is not an ed25519 key")
                return key
            try:
                native_key = base64.b64decode(native_key, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise KeyFormatError(f"Invalid base64 ed25519 public key: {exc}") from exc

        if not isinstance(native_key, bytes):
            raise KeyFormatError(
                f"Unsupported ed25519 key representation: {type(native_key).__name__}"
            )
        if len(native_key) != Curve.ED25519.component_size:
            raise KeyFormatError(
                "Raw ed25519 public key must be 32 bytes", {"length": len(native_key)}
            )
        return ed25519.Ed25519PublicKey.from_public_bytes(native_key)

    def _from_transit_document(self, document: Mapping[str, Any]) -> Any:
        key_type = document.get("type")
        if key_type is not None and key_type != Curve.ED25519.value:
            raise KeyFormatError(f"Transit key type {key_type!r} is not ed25519")

        versions = document.get("keys")
        if not isinstance(versions, Mapping):
            raise KeyFormatError("Transit key document has no 'keys' map")

        entry = versions.get(self.transit_key_version)
        if not isinstance(entry, Mapping) or not entry.get("public_key"):
            raise KeyFormatError(
                f"Transit key version {self.transit_key_version} has no public key",
                {"available_versions": sorted(str(v) for v in versions)},
            )
        return entry["public_key"]
