"""Centralized configuration management for kms-signer.

This module provides Pydantic-based configuration with environment variable
support for each remote signing backend. Variable names for the backends match
the ones used by existing deployment scripts (``AZURE_KEY_VAULT_URI``,
``GCP_KMS_KEY_VERSION``, ``VAULT_ADDR`` and friends).
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from kms_signer.exceptions import ConfigurationError
from kms_signer.models import DEFAULT_CURVES, BackendKind, Curve, SignatureLayout, SigningKeyHandle


class AzureKeyVaultSettings(BaseSettings):
    """HSM-backed key vault configuration."""

    model_config = SettingsConfigDict(
        env_prefix="AZURE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    key_vault_uri: str | None = Field(default=None, description="Vault URI")
    key_name: str | None = Field(default=None, description="Key name inside the vault")
    key_version: str | None = Field(default=None, description="Pinned key version")
    signature_layout: SignatureLayout = Field(
        default=SignatureLayout.AUTO, description="Signature layout returned by sign"
    )


class GoogleCloudKMSSettings(BaseSettings):
    """Cloud KMS configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GCP_KMS_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    key_version: str | None = Field(
        default=None,
        description="projects/.../keyRings/.../cryptoKeys/.../cryptoKeyVersions/N",
    )
    api_endpoint: str | None = Field(default=None, description="API endpoint override")
    timeout: float = Field(default=30.0, gt=0, le=600, description="RPC timeout in seconds")
    signature_layout: SignatureLayout = Field(
        default=SignatureLayout.DER, description="Signature layout returned by sign"
    )


class VaultTransitSettings(BaseSettings):
    """Secret-management transit engine configuration."""

    model_config = SettingsConfigDict(
        env_prefix="VAULT_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    addr: str | None = Field(default=None, description="Vault base address")
    token: str | None = Field(default=None, description="Vault API token")
    namespace: str | None = Field(default=None, description="Enterprise namespace")
    transit_mount: str = Field(default="transit", description="Transit engine mount path")
    key_name: str = Field(default="hedera-key", description="Transit key name")
    key_version: str = Field(default="1", description="Key version to read the public key from")
    timeout: float = Field(default=30.0, gt=0, le=600, description="HTTP timeout in seconds")

    @field_validator("transit_mount")
    @classmethod
    def strip_mount(cls, v: str) -> str:
        """Normalize the mount path to have no surrounding slashes."""
        v = v.strip("/")
        if not v:
            raise ValueError("Transit mount cannot be empty")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="KMS_SIGNER_LOG_", case_sensitive=False)

    level: str = Field(default="INFO", description="Logging level")
    structured: bool = Field(default=False, description="Emit JSON lines instead of text")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level.

        Args:
            v: Log level value

        Returns:
            Validated log level

        Raises:
            ValueError: If log level is invalid
        """
        valid_levels = {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class Settings(BaseSettings):
    """Main configuration selecting one backend and its key."""

    model_config = SettingsConfigDict(
        env_prefix="KMS_SIGNER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    backend: BackendKind | None = Field(default=None, description="Selected signing backend")
    curve: Curve | None = Field(default=None, description="Override the backend's default curve")
    retry_max_attempts: int = Field(
        default=1, ge=1, le=10, description="Attempts for retryable backend failures"
    )
    retry_delay: float = Field(
        default=1.0, ge=0, le=60, description="Base delay in seconds between attempts"
    )

    azure: AzureKeyVaultSettings = Field(default_factory=AzureKeyVaultSettings)
    gcp: GoogleCloudKMSSettings = Field(default_factory=GoogleCloudKMSSettings)
    vault: VaultTransitSettings = Field(default_factory=VaultTransitSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def require_backend(self) -> BackendKind:
        """Return the selected backend.

        Raises:
            ConfigurationError: If no backend is selected
        """
        if self.backend is None:
            raise ConfigurationError("No signing backend selected", missing=["KMS_SIGNER_BACKEND"])
        return self.backend

    def key_handle(self) -> SigningKeyHandle:
        """Build the key handle for the selected backend.

        Returns:
            Immutable key handle

        Raises:
            ConfigurationError: If required settings for the backend are missing
            KeyFormatError: If the curve override is not supported by the backend
        """
        backend = self.require_backend()
        curve = self.curve or DEFAULT_CURVES[backend]

        if backend is BackendKind.HSM_VAULT:
            self._require(
                {
                    "AZURE_KEY_VAULT_URI": self.azure.key_vault_uri,
                    "AZURE_KEY_NAME": self.azure.key_name,
                }
            )
            return SigningKeyHandle(
                backend=backend,
                key_id=self.azure.key_name,
                curve=curve,
                key_version=self.azure.key_version,
            )

        if backend is BackendKind.CLOUD_KMS:
            self._require({"GCP_KMS_KEY_VERSION": self.gcp.key_version})
            return SigningKeyHandle(backend=backend, key_id=self.gcp.key_version, curve=curve)

        self._require({"VAULT_ADDR": self.vault.addr, "VAULT_TOKEN": self.vault.token})
        return SigningKeyHandle(
            backend=backend,
            key_id=self.vault.key_name,
            curve=curve,
            key_version=self.vault.key_version,
        )

    @staticmethod
    def _require(values: dict[str, str | None]) -> None:
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing=missing,
            )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns:
        Global Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure_settings(settings: Settings) -> None:
    """Configure the global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings
    _settings = settings


def reload_settings() -> Settings:
    """Reload settings from environment variables.

    Returns:
        Reloaded Settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
