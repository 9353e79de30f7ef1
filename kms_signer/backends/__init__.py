"""Remote signing backend clients.

Each client binds one key-custody service to the :class:`BackendClient`
capability set. Provider SDK imports are deferred to :func:`create_backend`
so that only the selected backend's dependencies are loaded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from kms_signer.backends.base import FETCH_PUBLIC_KEY, SIGN, BackendClient, error_class_for_status
from kms_signer.models import BackendKind


if TYPE_CHECKING:
    from kms_signer.config import Settings


def create_backend(settings: Settings) -> BackendClient:
    """Construct the backend client selected by ``settings``.

    Args:
        settings: Root settings with the backend selected

    Returns:
        Backend client owning its transport handle

    Raises:
        ConfigurationError: If no backend is selected or its settings are incomplete
    """
    backend = settings.require_backend()

    if backend is BackendKind.HSM_VAULT:
        from kms_signer.backends.azure import AzureKeyVaultClient

        return AzureKeyVaultClient(settings.azure)

    if backend is BackendKind.CLOUD_KMS:
        from kms_signer.backends.gcp import GoogleCloudKMSClient

        return GoogleCloudKMSClient(settings.gcp)

    from kms_signer.backends.vault import VaultTransitClient

    return VaultTransitClient(settings.vault)


__all__ = [
    "FETCH_PUBLIC_KEY",
    "SIGN",
    "BackendClient",
    "create_backend",
    "error_class_for_status",
]
