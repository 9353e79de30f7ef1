"""Backend client interface.

A backend client is a thin transport binding exposing exactly two remote
operations. It does no hashing and no format conversion; those belong to the
digest policy and the codecs.
"""

from __future__ import annotations

from typing import Any, ClassVar, Protocol, runtime_checkable

from kms_signer.exceptions import BackendAuthError, BackendError, BackendUnavailableError
from kms_signer.models import BackendKind


FETCH_PUBLIC_KEY = "fetch_public_key"
SIGN = "sign"


@runtime_checkable
class BackendClient(Protocol):
    """Capability set shared by every remote signing backend."""

    kind: ClassVar[BackendKind]

    async def fetch_public_key(self, key_id: str) -> Any:
        """Fetch the backend-native public key for ``key_id``.

        Raises:
            BackendUnavailableError: On transport failure
            BackendAuthError: On credential or authorization failure
        """
        ...

    async def sign(self, key_id: str, prepared: bytes) -> bytes | str:
        """Sign already-prepared bytes and return the backend-native signature.

        Raises:
            BackendUnavailableError: On transport failure
            BackendAuthError: On credential or authorization failure
        """
        ...

    async def close(self) -> None:
        """Release the transport handle."""
        ...


def error_class_for_status(status_code: int | None) -> type[BackendError]:
    """Map a transport status code onto the backend error taxonomy.

    Args:
        status_code: HTTP status code, if any

    Returns:
        Exception class to raise
    """
    if status_code in (401, 403):
        return BackendAuthError
    if status_code is not None and (status_code == 429 or status_code >= 500):
        return BackendUnavailableError
    return BackendError
