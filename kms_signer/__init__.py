"""kms-signer.

Adapters that turn remote key-custody services (an HSM-backed key vault, a
cloud KMS and a secret-management transit engine) into one canonical signing
capability for ledger clients: an SPKI-DER public key and an async signer
returning fixed-width 64-byte signatures.
"""

from kms_signer.adapter import SigningAdapter, build_signing_adapter
from kms_signer.codecs import KeyMaterialCodec, SignatureCodec
from kms_signer.config import Settings, configure_settings, get_settings, reload_settings
from kms_signer.digest import DigestPolicy, keccak256
from kms_signer.exceptions import (
    BackendAuthError,
    BackendError,
    BackendUnavailableError,
    ConfigurationError,
    KeyFormatError,
    SignatureFormatError,
    SigningError,
)
from kms_signer.models import (
    BackendKind,
    CanonicalPublicKey,
    Curve,
    SignatureLayout,
    SigningKeyHandle,
)
from kms_signer.retry import RetryingSigningAdapter, RetryPolicy

__version__ = "1.0.0"
__all__ = [
    # Adapter
    "SigningAdapter",
    "RetryingSigningAdapter",
    "RetryPolicy",
    "build_signing_adapter",
    # Codecs and policy
    "KeyMaterialCodec",
    "SignatureCodec",
    "DigestPolicy",
    "keccak256",
    # Configuration
    "Settings",
    "get_settings",
    "configure_settings",
    "reload_settings",
    # Exceptions
    "SigningError",
    "ConfigurationError",
    "KeyFormatError",
    "SignatureFormatError",
    "BackendError",
    "BackendUnavailableError",
    "BackendAuthError",
    # Models
    "BackendKind",
    "Curve",
    "SignatureLayout",
    "SigningKeyHandle",
    "CanonicalPublicKey",
]
