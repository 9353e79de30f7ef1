"""
Remote Key Signing Example for kms-signer

This example builds a signing adapter from environment variables, prints the
canonical public key in the form a ledger client takes, and signs a payload
with the remote key.

Prerequisites:
    1. A provisioned key in one of the supported backends
    2. Credentials for that backend available to the process

Usage (HSM-backed key vault, secp256k1):
    export KMS_SIGNER_BACKEND=hsm-vault
    export AZURE_KEY_VAULT_URI=https://my-vault.vault.azure.net/
    export AZURE_KEY_NAME=operator-key
    python examples/sign_with_remote_key.py "transfer 10"

Usage (cloud KMS, secp256k1):
    export KMS_SIGNER_BACKEND=cloud-kms
    export GCP_KMS_KEY_VERSION=projects/.../cryptoKeys/operator/cryptoKeyVersions/1
    python examples/sign_with_remote_key.py "transfer 10"

Usage (transit engine, ed25519):
    export KMS_SIGNER_BACKEND=secret-transit
    export VAULT_ADDR=http://127.0.0.1:8200
    export VAULT_TOKEN=...
    python examples/sign_with_remote_key.py "transfer 10"
"""

import asyncio
import sys

from kms_signer import SigningError, build_signing_adapter, get_settings
from kms_signer.logging import configure_logging
from loguru import logger


async def run(payload: bytes) -> None:
    """Resolve the public key and sign ``payload``."""
    async with build_signing_adapter() as adapter:
        public_key = await adapter.get_public_key()
        protocol_key = public_key.for_protocol()

        logger.info(f"Key handle: {adapter.handle}")
        if isinstance(protocol_key, bytes):
            logger.info(f"Public key (raw ed25519): {protocol_key.hex()}")
        else:
            logger.info(f"Public key (SPKI DER hex): {protocol_key}")

        # A ledger client would receive adapter.signer as its operator signer
        signature = await adapter.signer(payload)
        logger.info(f"Signature ({len(signature)} bytes): {signature.hex()}")


def main() -> None:
    """Run the example."""
    settings = get_settings()
    configure_logging(level=settings.logging.level, structured=settings.logging.structured)

    payload = (sys.argv[1] if len(sys.argv) > 1 else "hello from kms-signer").encode()

    try:
        asyncio.run(run(payload))
    except SigningError as e:
        logger.error(f"Signing failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
