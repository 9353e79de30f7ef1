"""Signing adapter.

Composes one backend client with the digest policy and the two codecs into a
single capability: a canonical public key and an async ``sign`` returning the
signature layout the ledger verifier expects.

Example:
    >>> async with build_signing_adapter() as adapter:
    ...     public_key = await adapter.get_public_key()
    ...     signature = await adapter.sign(b"transaction body bytes")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from types import TracebackType

from loguru import logger

from kms_signer.backends import FETCH_PUBLIC_KEY, SIGN, BackendClient, create_backend
from kms_signer.codecs import KeyMaterialCodec, SignatureCodec
from kms_signer.config import Settings, get_settings
from kms_signer.digest import DigestPolicy
from kms_signer.exceptions import SigningError
from kms_signer.models import BackendKind, CanonicalPublicKey, SignatureLayout, SigningKeyHandle
from kms_signer.retry import RetryingSigningAdapter, RetryPolicy


Signer = Callable[[bytes], Awaitable[bytes]]


class SigningAdapter:
    """Canonical signing capability over one remote key.

    The public key is fetched lazily on first use and memoized for the
    adapter's lifetime. Concurrent ``sign`` calls share nothing but that
    memoized key.

    Args:
        handle: Key handle binding backend, key identifier and curve
        backend: Backend client for ``handle.backend``
        digest_policy: Hashing policy (default: Keccak-256 for secp256k1)
        key_codec: Public-key codec
        signature_codec: Signature codec
    """

    def __init__(
        self,
        handle: SigningKeyHandle,
        backend: BackendClient,
        *,
        digest_policy: DigestPolicy | None = None,
        key_codec: KeyMaterialCodec | None = None,
        signature_codec: SignatureCodec | None = None,
    ) -> None:
        if backend.kind is not handle.backend:
            raise SigningError(
                "Backend client does not match key handle",
                {"handle_backend": handle.backend.value, "client_backend": backend.kind.value},
            )

        self.handle = handle
        self._backend = backend
        self._digest_policy = digest_policy or DigestPolicy()
        self._key_codec = key_codec or KeyMaterialCodec(
            transit_key_version=handle.key_version or "1"
        )
        self._signature_codec = signature_codec or SignatureCodec()

        self._public_key: CanonicalPublicKey | None = None
        self._public_key_lock = asyncio.Lock()

    @property
    def signer(self) -> Signer:
        """Bound async signer for a ledger client's operator hook."""
        return self.sign

    async def get_public_key(self) -> CanonicalPublicKey:
        """Return the canonical public key, fetching it on first call.

        Failures are not memoized; a later call fetches again.

        Raises:
            KeyFormatError: If the backend key cannot be normalized
            BackendError: If the fetch fails
        """
        if self._public_key is not None:
            return self._public_key

        async with self._public_key_lock:
            if self._public_key is None:
                with self._annotated(FETCH_PUBLIC_KEY):
                    native_key = await self._backend.fetch_public_key(self.handle.key_id)
                    self._public_key = self._key_codec.normalize(native_key, self.handle.curve)

                logger.bind(**self._context(FETCH_PUBLIC_KEY)).info(
                    f"Resolved {self.handle.curve.value} public key for {self.handle}"
                )
        return self._public_key

    async def sign(self, payload: bytes) -> bytes:
        """Sign ``payload`` and return the canonical 64-byte signature.

        The signature is not verified against the public key here; the
        consuming protocol verifies it.

        Args:
            payload: Message bytes as produced by the ledger client

        Returns:
            ``r || s`` for secp256k1 or the ed25519 signature blob

        Raises:
            SignatureFormatError: If the backend signature cannot be normalized
            BackendError: If the remote call fails
        """
        await self.get_public_key()

        with self._annotated(SIGN):
            prepared = self._digest_policy.prepare(
                payload, self.handle.backend, self.handle.curve
            )
            native_signature = await self._backend.sign(self.handle.key_id, prepared)
            signature = self._signature_codec.normalize(native_signature, self.handle.curve)

        logger.bind(**self._context(SIGN)).debug(
            f"Signed {len(payload)} payload bytes -> {len(signature)} signature bytes"
        )
        return signature

    async def close(self) -> None:
        """Release the backend transport handle."""
        await self._backend.close()

    async def __aenter__(self) -> SigningAdapter:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    def _context(self, operation: str) -> dict[str, str]:
        return {
            "backend": self.handle.backend.value,
            "key_id": self.handle.key_id,
            "operation": operation,
        }

    @contextmanager
    def _annotated(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SigningError as exc:
            exc.add_context(**self._context(operation))
            raise


def build_signing_adapter(
    settings: Settings | None = None,
) -> SigningAdapter | RetryingSigningAdapter:
    """Build an adapter for the backend selected in settings.

    Args:
        settings: Settings to use (default: global settings)

    Returns:
        Signing adapter, wrapped with retries when ``retry_max_attempts > 1``

    Raises:
        ConfigurationError: If the selected backend is not fully configured
    """
    settings = settings or get_settings()
    handle = settings.key_handle()
    backend = create_backend(settings)

    layout = SignatureLayout.AUTO
    if handle.backend is BackendKind.HSM_VAULT:
        layout = settings.azure.signature_layout
    elif handle.backend is BackendKind.CLOUD_KMS:
        layout = settings.gcp.signature_layout

    adapter = SigningAdapter(
        handle,
        backend,
        key_codec=KeyMaterialCodec(transit_key_version=settings.vault.key_version),
        signature_codec=SignatureCodec(layout=layout),
    )
    logger.info(f"Built signing adapter for {handle}")

    if settings.retry_max_attempts > 1:
        policy = RetryPolicy(
            max_attempts=settings.retry_max_attempts, retry_delay=settings.retry_delay
        )
        return RetryingSigningAdapter(adapter, policy)
    return adapter
