"""Per-backend hashing policy.

The secp256k1 backends sign a caller-supplied 32-byte digest and never hash
on their own, so the payload is Keccak-256 hashed before transmission to
match the ledger verifier. The transit engine hashes internally as part of
ed25519 signing and must receive the payload untouched.
"""

from __future__ import annotations

from collections.abc import Callable

from eth_utils import keccak

from kms_signer.exceptions import KeyFormatError
from kms_signer.models import BackendKind, Curve


HashStep = Callable[[bytes], bytes]


def keccak256(payload: bytes) -> bytes:
    """Keccak-256 digest (pre-standard SHA-3 padding)."""
    return keccak(payload)


DEFAULT_HASH_STEPS: dict[tuple[BackendKind, Curve], HashStep | None] = {
    (BackendKind.HSM_VAULT, Curve.SECP256K1): keccak256,
    (BackendKind.CLOUD_KMS, Curve.SECP256K1): keccak256,
    (BackendKind.SECRET_TRANSIT, Curve.ED25519): None,
}


class DigestPolicy:
    """Decide who owns the hash step for a backend/curve combination."""

    def __init__(
        self, hash_steps: dict[tuple[BackendKind, Curve], HashStep | None] | None = None
    ) -> None:
        self._hash_steps = dict(DEFAULT_HASH_STEPS if hash_steps is None else hash_steps)

    def owns_hash_step(self, backend_kind: BackendKind, curve: Curve) -> bool:
        """Return True if the caller must hash before transmission."""
        return self._lookup(backend_kind, curve) is not None

    def prepare(self, payload: bytes, backend_kind: BackendKind, curve: Curve) -> bytes:
        """Return the bytes to transmit to the backend for ``payload``.

        Raises:
            KeyFormatError: If no policy exists for the backend/curve pair
        """
        step = self._lookup(backend_kind, curve)
        if step is None:
            return bytes(payload)
        return step(bytes(payload))

    def _lookup(self, backend_kind: BackendKind, curve: Curve) -> HashStep | None:
        key = (backend_kind, curve)
        if key not in self._hash_steps:
            raise KeyFormatError(
                f"No digest policy for {backend_kind.value} with {curve.value}",
                {"backend": backend_kind.value, "curve": curve.value},
            )
        return self._hash_steps[key]
