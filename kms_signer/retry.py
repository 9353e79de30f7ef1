"""Retry composition for transient backend failures.

The signing adapter never retries on its own. Callers that want to ride out
transport failures wrap it in :class:`RetryingSigningAdapter`, which retries
only :class:`BackendUnavailableError` with a linear backoff. Authorization and
format errors propagate on the first attempt.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import TYPE_CHECKING, TypeVar

from loguru import logger

from kms_signer.backends.base import FETCH_PUBLIC_KEY, SIGN
from kms_signer.exceptions import BackendUnavailableError


if TYPE_CHECKING:
    from kms_signer.adapter import SigningAdapter
    from kms_signer.models import CanonicalPublicKey, SigningKeyHandle


T = TypeVar("T")


class RetryPolicy:
    """Linear-backoff retry loop.

    Args:
        max_attempts: Total attempts including the first one
        retry_delay: Base delay in seconds; attempt ``n`` waits ``retry_delay * n``
    """

    def __init__(self, max_attempts: int = 3, retry_delay: float = 1.0) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay

    async def run(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` until it succeeds or attempts are exhausted.

        Args:
            operation: Operation name for log lines
            call: Zero-argument coroutine factory, invoked once per attempt

        Returns:
            Result of the first successful attempt

        Raises:
            BackendUnavailableError: If every attempt failed with a transport error
        """
        attempt = 1
        while True:
            try:
                return await call()
            except BackendUnavailableError as e:
                logger.bind(backend=e.backend, key_id=e.key_id, operation=operation).warning(
                    f"Backend unavailable: {e.message}, attempt={attempt}/{self.max_attempts}"
                )
                if attempt >= self.max_attempts:
                    e.add_context(attempts=attempt)
                    raise
                await asyncio.sleep(self.retry_delay * attempt)
                attempt += 1


class RetryingSigningAdapter:
    """Signing adapter that retries transient backend failures.

    Exposes the same surface as :class:`~kms_signer.adapter.SigningAdapter`.

    Args:
        adapter: Adapter to wrap
        policy: Retry policy
    """

    def __init__(self, adapter: SigningAdapter, policy: RetryPolicy | None = None) -> None:
        self.adapter = adapter
        self.policy = policy or RetryPolicy()

    @property
    def handle(self) -> SigningKeyHandle:
        """Key handle of the wrapped adapter."""
        return self.adapter.handle

    @property
    def signer(self) -> Callable[[bytes], Awaitable[bytes]]:
        """Bound async signer for a ledger client's operator hook."""
        return self.sign

    async def get_public_key(self) -> CanonicalPublicKey:
        """Resolve the public key, retrying transport failures."""
        return await self.policy.run(FETCH_PUBLIC_KEY, self.adapter.get_public_key)

    async def sign(self, payload: bytes) -> bytes:
        """Sign ``payload``, retrying transport failures."""
        return await self.policy.run(SIGN, lambda: self.adapter.sign(payload))

    async def close(self) -> None:
        """Close the wrapped adapter."""
        await self.adapter.close()

    async def __aenter__(self) -> RetryingSigningAdapter:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
