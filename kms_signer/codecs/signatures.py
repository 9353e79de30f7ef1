"""Signature normalization.

Reconstructs the fixed-width signature layout the ledger verifier expects:
64 bytes ``r || s`` (big-endian, left-padded, no DER wrapper, no recovery
byte) for secp256k1, and the 64-byte opaque blob for ed25519.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from loguru import logger

from kms_signer.exceptions import SignatureFormatError
from kms_signer.models import Curve, SignatureLayout


ASN1_SEQUENCE_TAG = 0x30


def looks_like_der(blob: bytes) -> bool:
    """Check for a SEQUENCE header whose short-form length covers the blob."""
    return len(blob) >= 2 and blob[0] == ASN1_SEQUENCE_TAG and blob[1] == len(blob) - 2


def der_to_raw(blob: bytes, component_size: int = 32) -> bytes:
    """Convert a DER ``SEQUENCE { INTEGER r, INTEGER s }`` into ``r || s``.

    Each INTEGER may carry a leading 0x00 sign byte or be shorter than
    ``component_size``; both are normalized to exactly ``component_size``
    big-endian bytes.

    Raises:
        SignatureFormatError: On malformed ASN.1 or an oversized component
    """
    try:
        r, s = decode_dss_signature(blob)
    except ValueError as exc:
        raise SignatureFormatError(
            f"Malformed DER signature: {exc}", {"length": len(blob)}
        ) from exc

    return _fixed_width(r, component_size, "r") + _fixed_width(s, component_size, "s")


def _fixed_width(value: int, size: int, name: str) -> bytes:
    try:
        return value.to_bytes(size, "big")
    except OverflowError as exc:
        raise SignatureFormatError(
            f"Signature component {name} does not fit in {size} bytes",
            {"component": name, "bits": value.bit_length()},
        ) from exc


class SignatureCodec:
    """Convert backend-native signatures into the canonical layout.

    Args:
        layout: How secp256k1 responses are laid out by the backend
    """

    def __init__(self, layout: SignatureLayout = SignatureLayout.AUTO) -> None:
        self.layout = layout

    def normalize(self, native_signature: bytes | str, curve: Curve) -> bytes:
        """Normalize a backend signature.

        Args:
            native_signature: DER or raw bytes (secp256k1), or the transit
                ``version:version:base64`` composite string (ed25519)
            curve: Curve of the signing key

        Returns:
            Canonical signature bytes

        Raises:
            SignatureFormatError: If the signature cannot be decoded
        """
        if curve is Curve.SECP256K1:
            signature = self._normalize_ecdsa(native_signature, curve)
        elif curve is Curve.ED25519:
            signature = self._normalize_eddsa(native_signature, curve)
        else:
            raise SignatureFormatError(f"Unsupported curve: {curve}")

        if len(signature) != curve.signature_size:
            raise SignatureFormatError(
                f"{curve.value} signature must be {curve.signature_size} bytes",
                {"length": len(signature)},
            )
        return signature

    def _normalize_ecdsa(self, native_signature: bytes | str, curve: Curve) -> bytes:
        if not isinstance(native_signature, (bytes, bytearray)):
            raise SignatureFormatError(
                f"Expected signature bytes, got {type(native_signature).__name__}"
            )
        blob = bytes(native_signature)

        if self.layout is SignatureLayout.RAW:
            return blob
        if self.layout is SignatureLayout.DER:
            return der_to_raw(blob, curve.component_size)

        if len(blob) != curve.signature_size:
            return der_to_raw(blob, curve.component_size)
        if looks_like_der(blob):
            # A raw r||s can begin with a plausible SEQUENCE header
            try:
                return der_to_raw(blob, curve.component_size)
            except SignatureFormatError:
                logger.debug("DER-like signature failed to decode, treating as raw r||s")
                return blob
        logger.debug("Signature already in raw r||s layout")
        return blob

    def _normalize_eddsa(self, native_signature: bytes | str, curve: Curve) -> bytes:
        if isinstance(native_signature, (bytes, bytearray)):
            return bytes(native_signature)
        if not isinstance(native_signature, str):
            raise SignatureFormatError(
                f"Expected signature string, got {type(native_signature).__name__}"
            )

        # "<version>:<version>:<base64>"; only the trailing field is the signature
        encoded = native_signature.split(":")[-1]
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise SignatureFormatError(f"Invalid base64 signature: {exc}") from exc
