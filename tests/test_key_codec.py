"""Tests for public-key normalization."""

import base64
from enum import Enum

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from kms_signer.codecs.keys import KeyMaterialCodec, b64url
from kms_signer.exceptions import KeyFormatError
from kms_signer.models import CanonicalPublicKey, Curve
from pydantic import ValidationError


class _KeyType(str, Enum):
    EC_HSM = "EC-HSM"


class _CurveName(str, Enum):
    P_256K = "P-256K"


class TestSecp256k1Keys:
    """Tests for secp256k1 key normalization."""

    def test_vault_jwk_matches_kms_pem(self, secp256k1_vault_jwk, secp256k1_pem):
        """Test the vault JWK and the KMS PEM of one key normalize identically."""
        codec = KeyMaterialCodec()

        from_jwk = codec.normalize(secp256k1_vault_jwk, Curve.SECP256K1)
        from_pem = codec.normalize(secp256k1_pem, Curve.SECP256K1)

        assert from_jwk.der == from_pem.der
        assert from_jwk.curve is Curve.SECP256K1

    def test_vault_jwk_is_standard_spki(self, secp256k1_key, secp256k1_vault_jwk):
        """Test the canonical key loads as a standard secp256k1 SPKI key."""
        canonical = KeyMaterialCodec().normalize(secp256k1_vault_jwk, Curve.SECP256K1)

        loaded = serialization.load_der_public_key(canonical.der)

        assert isinstance(loaded, ec.EllipticCurvePublicKey)
        assert isinstance(loaded.curve, ec.SECP256K1)
        assert loaded.public_numbers() == secp256k1_key.public_key().public_numbers()

    def test_jwk_with_sdk_enums(self, secp256k1_vault_jwk, secp256k1_pem):
        """Test enum-valued kty/crv fields are read by value."""
        jwk = dict(secp256k1_vault_jwk, kty=_KeyType.EC_HSM, crv=_CurveName.P_256K)

        canonical = KeyMaterialCodec().normalize(jwk, Curve.SECP256K1)

        assert canonical.der == KeyMaterialCodec().normalize(secp256k1_pem, Curve.SECP256K1).der

    def test_standard_jwk_with_text_coordinates(self, secp256k1_vault_jwk, secp256k1_pem):
        """Test a standard JWK with base64url coordinates is accepted unchanged."""
        jwk = {
            "kty": "EC",
            "crv": "secp256k1",
            "x": b64url(secp256k1_vault_jwk["x"]),
            "y": b64url(secp256k1_vault_jwk["y"]),
        }

        canonical = KeyMaterialCodec().normalize(jwk, Curve.SECP256K1)

        assert canonical.der == KeyMaterialCodec().normalize(secp256k1_pem, Curve.SECP256K1).der

    def test_der_bytes_input(self, secp256k1_key):
        """Test SPKI DER bytes are accepted."""
        der = secp256k1_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        assert KeyMaterialCodec().normalize(der, Curve.SECP256K1).der == der

    def test_jwk_missing_fields(self, secp256k1_vault_jwk):
        """Test a JWK without coordinates is rejected with the missing names."""
        jwk = {"kty": secp256k1_vault_jwk["kty"], "crv": secp256k1_vault_jwk["crv"]}

        with pytest.raises(KeyFormatError) as exc_info:
            KeyMaterialCodec().normalize(jwk, Curve.SECP256K1)

        assert exc_info.value.details["missing"] == ["x", "y"]

    def test_jwk_unknown_curve(self, secp256k1_vault_jwk):
        """Test an unrecognized curve name is rejected."""
        jwk = dict(secp256k1_vault_jwk, crv="P-521-HSM")

        with pytest.raises(KeyFormatError) as exc_info:
            KeyMaterialCodec().normalize(jwk, Curve.SECP256K1)

        assert exc_info.value.details["crv"] == "P-521-HSM"

    def test_jwk_point_not_on_curve(self, secp256k1_vault_jwk):
        """Test coordinates that are not a curve point are rejected."""
        jwk = dict(secp256k1_vault_jwk, y=b"\x01" * 32)

        with pytest.raises(KeyFormatError):
            KeyMaterialCodec().normalize(jwk, Curve.SECP256K1)

    def test_pem_on_wrong_curve(self):
        """Test a P-256 key is rejected for secp256k1."""
        pem = (
            ec.generate_private_key(ec.SECP256R1())
            .public_key()
            .public_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            )
        )

        with pytest.raises(KeyFormatError) as exc_info:
            KeyMaterialCodec().normalize(pem, Curve.SECP256K1)

        assert "not on secp256k1" in str(exc_info.value)

    def test_corrupt_pem(self):
        """Test unparseable PEM is rejected."""
        with pytest.raises(KeyFormatError):
            KeyMaterialCodec().normalize(
                "-----BEGIN PUBLIC KEY-----\nAAAA\n-----END PUBLIC KEY-----\n", Curve.SECP256K1
            )

    def test_unsupported_representation(self):
        """Test non-mapping, non-text input is rejected."""
        with pytest.raises(KeyFormatError):
            KeyMaterialCodec().normalize(42, Curve.SECP256K1)


class TestEd25519Keys:
    """Tests for ed25519 key normalization."""

    def test_transit_document(self, transit_key_document, ed25519_raw_public):
        """Test the transit key document is unwrapped into SPKI DER."""
        canonical = KeyMaterialCodec().normalize(transit_key_document, Curve.ED25519)

        loaded = serialization.load_der_public_key(canonical.der)
        assert isinstance(loaded, ed25519.Ed25519PublicKey)
        assert canonical.raw() == ed25519_raw_public

    def test_transit_document_other_version(self, transit_key_document):
        """Test the configured version entry is read."""
        other = ed25519.Ed25519PrivateKey.generate().public_key().public_bytes(
            encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
        )
        transit_key_document["keys"]["2"] = {"public_key": base64.b64encode(other).decode()}

        canonical = KeyMaterialCodec(transit_key_version="2").normalize(
            transit_key_document, Curve.ED25519
        )

        assert canonical.raw() == other

    def test_transit_document_missing_version(self, transit_key_document):
        """Test an absent version lists the versions that exist."""
        with pytest.raises(KeyFormatError) as exc_info:
            KeyMaterialCodec(transit_key_version="7").normalize(
                transit_key_document, Curve.ED25519
            )

        assert exc_info.value.details["available_versions"] == ["1"]

    def test_transit_document_wrong_type(self, transit_key_document):
        """Test a non-ed25519 transit key is rejected."""
        transit_key_document["type"] = "ecdsa-p256"

        with pytest.raises(KeyFormatError):
            KeyMaterialCodec().normalize(transit_key_document, Curve.ED25519)

    def test_transit_document_without_keys(self):
        """Test a document with no keys map is rejected."""
        with pytest.raises(KeyFormatError):
            KeyMaterialCodec().normalize({"type": "ed25519"}, Curve.ED25519)

    def test_base64_raw_key(self, ed25519_raw_public):
        """Test a bare base64 raw key is accepted."""
        encoded = base64.b64encode(ed25519_raw_public).decode("ascii")

        assert KeyMaterialCodec().normalize(encoded, Curve.ED25519).raw() == ed25519_raw_public

    def test_raw_bytes(self, ed25519_raw_public):
        """Test raw key bytes are accepted."""
        assert (
            KeyMaterialCodec().normalize(ed25519_raw_public, Curve.ED25519).raw()
            == ed25519_raw_public
        )

    def test_pem_key(self, ed25519_key, ed25519_raw_public):
        """Test an ed25519 PEM key is accepted."""
        pem = ed25519_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        canonical = KeyMaterialCodec().normalize(pem.decode("ascii"), Curve.ED25519)

        assert canonical.raw() == ed25519_raw_public

    def test_pem_of_other_key_type(self, secp256k1_pem):
        """Test a secp256k1 PEM is rejected for ed25519."""
        with pytest.raises(KeyFormatError):
            KeyMaterialCodec().normalize(secp256k1_pem, Curve.ED25519)

    def test_wrong_length(self):
        """Test raw keys other than 32 bytes are rejected."""
        with pytest.raises(KeyFormatError) as exc_info:
            KeyMaterialCodec().normalize(b"\x01" * 31, Curve.ED25519)

        assert exc_info.value.details["length"] == 31

    def test_invalid_base64(self):
        """Test non-base64 text is rejected."""
        with pytest.raises(KeyFormatError):
            KeyMaterialCodec().normalize("%%%", Curve.ED25519)


class TestCanonicalPublicKey:
    """Tests for CanonicalPublicKey accessors."""

    def test_hex_for_secp256k1(self, secp256k1_pem):
        """Test secp256k1 keys hand the ledger a hex SPKI DER string."""
        canonical = KeyMaterialCodec().normalize(secp256k1_pem, Curve.SECP256K1)

        assert canonical.for_protocol() == canonical.der.hex()
        assert bytes.fromhex(canonical.hex()) == canonical.der

    def test_raw_for_ed25519(self, transit_key_document, ed25519_raw_public):
        """Test ed25519 keys hand the ledger the raw 32 bytes."""
        canonical = KeyMaterialCodec().normalize(transit_key_document, Curve.ED25519)

        assert canonical.for_protocol() == ed25519_raw_public

    def test_compressed_secp256k1_raw(self, secp256k1_key, secp256k1_pem):
        """Test raw() gives the 33-byte compressed point for secp256k1."""
        canonical = KeyMaterialCodec().normalize(secp256k1_pem, Curve.SECP256K1)

        expected = secp256k1_key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.CompressedPoint,
        )
        assert canonical.raw() == expected
        assert len(canonical.raw()) == 33

    def test_immutable(self, secp256k1_pem):
        """Test canonical keys cannot be mutated."""
        canonical = KeyMaterialCodec().normalize(secp256k1_pem, Curve.SECP256K1)

        with pytest.raises(ValidationError):
            canonical.der = b""

    def test_load_returns_key_object(self, ed25519_raw_public):
        """Test load() parses the DER."""
        canonical = KeyMaterialCodec().normalize(ed25519_raw_public, Curve.ED25519)

        assert isinstance(canonical.load(), ed25519.Ed25519PublicKey)
        assert isinstance(canonical, CanonicalPublicKey)
