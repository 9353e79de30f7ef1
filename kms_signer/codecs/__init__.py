"""Key and signature codecs."""

from kms_signer.codecs.keys import KeyMaterialCodec
from kms_signer.codecs.signatures import SignatureCodec, der_to_raw, looks_like_der


__all__ = [
    "KeyMaterialCodec",
    "SignatureCodec",
    "der_to_raw",
    "looks_like_der",
]
