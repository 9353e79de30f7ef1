"""Secret-transit engine client (HashiCorp Vault transit)."""

from __future__ import annotations

import base64
from typing import Any, ClassVar

import httpx
from loguru import logger

from kms_signer.backends.base import FETCH_PUBLIC_KEY, SIGN, error_class_for_status
from kms_signer.config import VaultTransitSettings
from kms_signer.exceptions import (
    BackendError,
    BackendUnavailableError,
    ConfigurationError,
    KeyFormatError,
    SignatureFormatError,
)
from kms_signer.models import BackendKind


class VaultTransitClient:
    """Signs with an ed25519 key held by a Vault transit engine.

    Example:
        >>> client = VaultTransitClient(VaultTransitSettings(addr=..., token=...))
        >>> document = await client.fetch_public_key("hedera-key")
        >>> signature = await client.sign("hedera-key", b"payload")
    """

    kind: ClassVar[BackendKind] = BackendKind.SECRET_TRANSIT

    def __init__(
        self,
        settings: VaultTransitSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transit client.

        Args:
            settings: Vault settings
            http_client: Pre-built HTTP client; must carry the Vault headers

        Raises:
            ConfigurationError: If the address or token is missing
        """
        missing = [
            name
            for name, value in (("VAULT_ADDR", settings.addr), ("VAULT_TOKEN", settings.token))
            if not value
        ]
        if missing and http_client is None:
            raise ConfigurationError("Vault transit is not configured", missing=missing)

        self._mount = settings.transit_mount
        self._owns_client = http_client is None

        if http_client is None:
            headers = {"X-Vault-Token": settings.token or "", "Accept": "application/json"}
            if settings.namespace:
                headers["X-Vault-Namespace"] = settings.namespace
            http_client = httpx.AsyncClient(
                base_url=(settings.addr or "").rstrip("/"),
                headers=headers,
                timeout=settings.timeout,
            )
        self._http_client = http_client

        logger.debug(
            f"Initialized transit client: addr={settings.addr}, mount={self._mount}, "
            f"timeout={settings.timeout}s"
        )

    async def fetch_public_key(self, key_id: str) -> dict[str, Any]:
        """Read the transit key document.

        Returns:
            The ``data`` object, whose ``keys`` map holds one entry per version
        """
        body = await self._request(
            "GET", f"/v1/{self._mount}/keys/{key_id}", key_id, FETCH_PUBLIC_KEY
        )
        data = body.get("data")
        if not isinstance(data, dict):
            raise KeyFormatError(
                "Transit key response has no data object",
                {"backend": self.kind.value, "key_id": key_id, "operation": FETCH_PUBLIC_KEY},
            )
        return data

    async def sign(self, key_id: str, prepared: bytes) -> str:
        """Sign the payload; returns the ``vault:v1:<base64>`` composite string."""
        payload = {"input": base64.b64encode(prepared).decode("ascii")}
        body = await self._request(
            "POST", f"/v1/{self._mount}/sign/{key_id}", key_id, SIGN, json=payload
        )

        signature = (body.get("data") or {}).get("signature")
        if not isinstance(signature, str):
            raise SignatureFormatError(
                "Transit sign response has no signature",
                {"backend": self.kind.value, "key_id": key_id, "operation": SIGN},
            )
        return signature

    async def close(self) -> None:
        """Close the HTTP client if this client created it."""
        if self._owns_client:
            await self._http_client.aclose()

    async def _request(
        self, method: str, path: str, key_id: str, operation: str, **kwargs: Any
    ) -> dict[str, Any]:
        context = {"backend": self.kind.value, "key_id": key_id, "operation": operation}

        try:
            response = await self._http_client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            raise BackendUnavailableError(f"Vault unreachable: {exc}", **context) from exc

        logger.bind(**context).debug(f"{method} {path} -> HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.is_success:
            errors = body.get("errors") if isinstance(body, dict) else None
            detail = "; ".join(str(e) for e in errors) if errors else response.text
            detail = detail or "Unknown error"
            error_class = error_class_for_status(response.status_code)
            raise error_class(
                f"Vault request failed (HTTP {response.status_code}): {detail}",
                status_code=response.status_code,
                response_data=body or None,
                **context,
            )

        if not isinstance(body, dict):
            raise BackendError("Vault returned a non-object JSON body", **context)
        return body
