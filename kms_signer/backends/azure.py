"""HSM-backed key vault client (Azure Key Vault)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, ClassVar

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.identity.aio import DefaultAzureCredential
from azure.keyvault.keys.aio import KeyClient
from azure.keyvault.keys.crypto import SignatureAlgorithm
from azure.keyvault.keys.crypto.aio import CryptographyClient
from loguru import logger

from kms_signer.backends.base import FETCH_PUBLIC_KEY, SIGN, error_class_for_status
from kms_signer.config import AzureKeyVaultSettings
from kms_signer.exceptions import (
    BackendAuthError,
    BackendError,
    BackendUnavailableError,
    ConfigurationError,
)
from kms_signer.models import BackendKind


class AzureKeyVaultClient:
    """Signs with a secp256k1 key held in an HSM-backed key vault.

    The vault signs a caller-supplied 32-byte digest with ES256K and returns
    the JWK public key with ``EC-HSM``/``P-256K`` enum values.
    """

    kind: ClassVar[BackendKind] = BackendKind.HSM_VAULT

    def __init__(
        self,
        settings: AzureKeyVaultSettings,
        *,
        credential: Any = None,
        key_client: Any = None,
        crypto_client_factory: Callable[[Any, Any], Any] = CryptographyClient,
    ) -> None:
        """Initialize the vault client.

        Args:
            settings: Vault settings
            credential: Async token credential (default: DefaultAzureCredential)
            key_client: Pre-built async KeyClient
            crypto_client_factory: Builds a cryptography client from (key, credential)

        Raises:
            ConfigurationError: If the vault URI is not configured
        """
        if not settings.key_vault_uri:
            raise ConfigurationError(
                "Key vault URI is not configured", missing=["AZURE_KEY_VAULT_URI"]
            )

        self._owns_credential = credential is None
        self._credential = credential if credential is not None else DefaultAzureCredential()
        self._key_client = key_client or KeyClient(
            vault_url=settings.key_vault_uri, credential=self._credential
        )
        self._key_version = settings.key_version
        self._crypto_client_factory = crypto_client_factory

        logger.debug(f"Initialized key vault client: url={settings.key_vault_uri}")

    async def fetch_public_key(self, key_id: str) -> dict[str, Any]:
        """Fetch the key's JSON Web Key.

        Returns:
            Mapping with the vault's ``kty``, ``crv``, ``x`` and ``y`` values
        """
        key = await self._get_key(key_id, FETCH_PUBLIC_KEY)
        jwk = key.key
        return {"kty": jwk.kty, "crv": jwk.crv, "x": jwk.x, "y": jwk.y}

    async def sign(self, key_id: str, prepared: bytes) -> bytes:
        """Sign a 32-byte digest with ES256K."""
        key = await self._get_key(key_id, SIGN)
        crypto_client = self._crypto_client_factory(key, self._credential)
        try:
            result = await crypto_client.sign(SignatureAlgorithm.es256_k, prepared)
        except AzureError as exc:
            raise self._translate(exc, key_id, SIGN) from exc
        finally:
            await crypto_client.close()

        logger.bind(backend=self.kind.value, key_id=key_id, operation=SIGN).debug(
            f"Vault returned {len(result.signature)} signature bytes"
        )
        return result.signature

    async def close(self) -> None:
        """Close the key client and, if owned, the credential."""
        await self._key_client.close()
        if self._owns_credential:
            await self._credential.close()

    async def _get_key(self, key_id: str, operation: str) -> Any:
        try:
            return await self._key_client.get_key(key_id, version=self._key_version)
        except AzureError as exc:
            raise self._translate(exc, key_id, operation) from exc

    def _translate(self, exc: AzureError, key_id: str, operation: str) -> BackendError:
        context = {"backend": self.kind.value, "key_id": key_id, "operation": operation}

        if isinstance(exc, ClientAuthenticationError):
            return BackendAuthError(f"Key vault rejected credentials: {exc.message}", **context)
        if isinstance(exc, (ServiceRequestError, ServiceResponseError)):
            return BackendUnavailableError(f"Key vault unreachable: {exc.message}", **context)
        if isinstance(exc, HttpResponseError):
            error_class = error_class_for_status(exc.status_code)
            return error_class(
                f"Key vault request failed: {exc.message}",
                status_code=exc.status_code,
                **context,
            )
        return BackendError(f"Key vault request failed: {exc}", **context)
