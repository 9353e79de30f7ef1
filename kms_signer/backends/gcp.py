"""Cloud KMS client (Google Cloud KMS)."""

from __future__ import annotations

from typing import Any, ClassVar

from google.api_core import exceptions as google_exceptions
from google.api_core.client_options import ClientOptions
from google.auth import exceptions as auth_exceptions
from google.cloud import kms
from loguru import logger

from kms_signer.backends.base import FETCH_PUBLIC_KEY, SIGN
from kms_signer.config import GoogleCloudKMSSettings
from kms_signer.exceptions import BackendAuthError, BackendError, BackendUnavailableError
from kms_signer.models import BackendKind


_AUTH_ERRORS = (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)
_UNAVAILABLE_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.TooManyRequests,
    google_exceptions.RetryError,
)
_CALL_ERRORS = (
    google_exceptions.GoogleAPICallError,
    google_exceptions.RetryError,
    auth_exceptions.GoogleAuthError,
)


class GoogleCloudKMSClient:
    """Signs with an ``EC_SIGN_SECP256K1_SHA256`` key version in Cloud KMS.

    KMS signs a caller-supplied digest and only checks its length, so the
    Keccak-256 digest is sent in the ``sha256`` digest field. Signatures come
    back DER encoded.
    """

    kind: ClassVar[BackendKind] = BackendKind.CLOUD_KMS

    def __init__(self, settings: GoogleCloudKMSSettings, *, client: Any = None) -> None:
        """Initialize the KMS client.

        Args:
            settings: Cloud KMS settings
            client: Pre-built KeyManagementServiceAsyncClient

        Raises:
            BackendAuthError: If application default credentials are unavailable
        """
        self._timeout = settings.timeout
        self._owns_client = client is None

        if client is None:
            options = None
            if settings.api_endpoint:
                options = ClientOptions(api_endpoint=settings.api_endpoint)
            try:
                client = kms.KeyManagementServiceAsyncClient(client_options=options)
            except auth_exceptions.DefaultCredentialsError as exc:
                raise BackendAuthError(
                    f"Cloud KMS credentials unavailable: {exc}", backend=self.kind.value
                ) from exc
        self._client = client

        logger.debug(
            f"Initialized cloud KMS client: endpoint={settings.api_endpoint or 'default'}, "
            f"timeout={self._timeout}s"
        )

    async def fetch_public_key(self, key_id: str) -> str:
        """Fetch the key version's PEM-armored SPKI public key."""
        try:
            response = await self._client.get_public_key(
                request={"name": key_id}, timeout=self._timeout
            )
        except _CALL_ERRORS as exc:
            raise self._translate(exc, key_id, FETCH_PUBLIC_KEY) from exc
        return response.pem

    async def sign(self, key_id: str, prepared: bytes) -> bytes:
        """Sign a 32-byte digest; returns a DER ECDSA signature."""
        try:
            response = await self._client.asymmetric_sign(
                request={"name": key_id, "digest": {"sha256": prepared}},
                timeout=self._timeout,
            )
        except _CALL_ERRORS as exc:
            raise self._translate(exc, key_id, SIGN) from exc

        logger.bind(backend=self.kind.value, key_id=key_id, operation=SIGN).debug(
            f"KMS returned {len(response.signature)} signature bytes"
        )
        return response.signature

    async def close(self) -> None:
        """Close the gRPC channel if this client created it."""
        if self._owns_client:
            await self._client.transport.close()

    def _translate(self, exc: Exception, key_id: str, operation: str) -> BackendError:
        context = {"backend": self.kind.value, "key_id": key_id, "operation": operation}

        if isinstance(exc, auth_exceptions.TransportError):
            return BackendUnavailableError(f"Cloud KMS credential refresh failed: {exc}", **context)
        if isinstance(exc, auth_exceptions.GoogleAuthError):
            return BackendAuthError(f"Cloud KMS credentials rejected: {exc}", **context)

        status_code = getattr(exc, "code", None)
        if not isinstance(status_code, int):
            status_code = None

        if isinstance(exc, _AUTH_ERRORS):
            return BackendAuthError(
                f"Cloud KMS denied access: {exc}", status_code=status_code, **context
            )
        if isinstance(exc, _UNAVAILABLE_ERRORS):
            return BackendUnavailableError(
                f"Cloud KMS unavailable: {exc}", status_code=status_code, **context
            )
        return BackendError(f"Cloud KMS request failed: {exc}", status_code=status_code, **context)
