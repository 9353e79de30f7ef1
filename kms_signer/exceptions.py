"""Exceptions for the remote signing adapters.

This module defines the exception hierarchy shared by the codecs, the backend
clients and the signing adapter. Every error carries a ``details`` mapping so
that a failure can be diagnosed from the log line alone.
"""

from __future__ import annotations

from typing import Any


class SigningError(Exception):
    """Base exception for all kms-signer errors.

    All library exceptions inherit from this class, allowing callers to catch
    every signing failure with a single except clause.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize signing error.

        Args:
            message: Error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of error."""
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message

    def add_context(self, **context: Any) -> None:
        """Attach diagnostic context without overwriting existing keys."""
        for key, value in context.items():
            if value is not None:
                self.details.setdefault(key, value)


class ConfigurationError(SigningError):
    """Raised when settings are missing or inconsistent."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        """Initialize configuration error.

        Args:
            message: Error message
            missing: Names of the environment variables that must be set
        """
        super().__init__(message, {"missing": missing} if missing else None)
        self.missing = missing or []


class KeyFormatError(SigningError):
    """Raised when a public key cannot be parsed or declares an unsupported curve.

    Indicates a provisioning mismatch; never retried.
    """


class SignatureFormatError(SigningError):
    """Raised when a backend signature is malformed or has unexpected width.

    Indicates a codec bug or a backend protocol change; never masked.
    """


class BackendError(SigningError):
    """Error returned by a remote key-custody backend.

    Raised as-is for non-success responses that are neither transport nor
    authorization failures (for example a key that does not exist).
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        backend: str | None = None,
        key_id: str | None = None,
        operation: str | None = None,
        status_code: int | None = None,
        response_data: Any = None,
    ) -> None:
        """Initialize backend error.

        Args:
            message: Error message
            backend: Backend kind that produced the failure
            key_id: Remote key identifier
            operation: Operation that failed (fetch_public_key or sign)
            status_code: Transport status code if available
            response_data: Decoded error body if available
        """
        details: dict[str, Any] = {}
        if backend:
            details["backend"] = backend
        if key_id:
            details["key_id"] = key_id
        if operation:
            details["operation"] = operation
        if status_code is not None:
            details["status_code"] = status_code
        if response_data:
            details["response"] = response_data

        super().__init__(message, details)
        self.backend = backend
        self.key_id = key_id
        self.operation = operation
        self.status_code = status_code
        self.response_data = response_data


class BackendUnavailableError(BackendError):
    """Transport or network failure talking to the backend.

    Safe to retry with backoff at the composition layer.
    """

    retryable = True


class BackendAuthError(BackendError):
    """Credential or authorization failure reported by the backend.

    Retrying will not change an authorization decision.
    """
