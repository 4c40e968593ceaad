"""P-256 key generation, JWK serialization and ECDH."""

import base64
import json
from typing import Tuple

from cryptography.hazmat.primitives.asymmetric import ec

from .types import InvalidPublicKeyError

CURVE_NAME = "P-256"
COORDINATE_SIZE = 32


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _int_to_bytes(value: int) -> bytes:
    return value.to_bytes(COORDINATE_SIZE, byteorder="big")


def generate_keypair() -> Tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    """
    Generate a random P-256 key pair for key agreement.

    Returns:
        Tuple of (private_key, public_key)
    """
    private_key = ec.generate_private_key(ec.SECP256R1())
    return private_key, private_key.public_key()


def ecdh(private_key: ec.EllipticCurvePrivateKey, public_key: ec.EllipticCurvePublicKey) -> bytes:
    """
    Perform P-256 ECDH key exchange.

    Args:
        private_key: Our private key
        public_key: Their public key

    Returns:
        32-byte shared secret (x-coordinate of the shared point)
    """
    return private_key.exchange(ec.ECDH(), public_key)


def public_key_to_jwk(public_key: ec.EllipticCurvePublicKey) -> dict:
    """Convert a P-256 public key to a JWK dict."""
    numbers = public_key.public_numbers()
    return {
        "crv": CURVE_NAME,
        "kty": "EC",
        "x": _b64url_encode(_int_to_bytes(numbers.x)),
        "y": _b64url_encode(_int_to_bytes(numbers.y)),
    }


def private_key_to_jwk(private_key: ec.EllipticCurvePrivateKey) -> dict:
    """Convert a P-256 private key to a JWK dict (includes the public coordinates)."""
    jwk = public_key_to_jwk(private_key.public_key())
    jwk["d"] = _b64url_encode(_int_to_bytes(private_key.private_numbers().private_value))
    return jwk


def public_key_from_jwk(jwk: dict) -> ec.EllipticCurvePublicKey:
    """
    Create a P-256 public key from a JWK dict.

    Raises:
        InvalidPublicKeyError: If the JWK is not a valid P-256 public key.
    """
    if not isinstance(jwk, dict) or jwk.get("kty") != "EC" or jwk.get("crv") != CURVE_NAME:
        raise InvalidPublicKeyError("Expected an EC P-256 JWK")
    try:
        x = int.from_bytes(_b64url_decode(jwk["x"]), byteorder="big")
        y = int.from_bytes(_b64url_decode(jwk["y"]), byteorder="big")
        return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidPublicKeyError(f"Invalid P-256 JWK: {e}") from e


def private_key_from_jwk(jwk: dict) -> ec.EllipticCurvePrivateKey:
    """Create a P-256 private key from a JWK dict holding `d`."""
    d = int.from_bytes(_b64url_decode(jwk["d"]), byteorder="big")
    return ec.derive_private_key(d, ec.SECP256R1())


def public_key_to_material(public_key: ec.EllipticCurvePublicKey) -> str:
    """Serialize a public key for upload: compact JSON of its JWK."""
    return json.dumps(public_key_to_jwk(public_key), separators=(",", ":"), sort_keys=True)


def public_key_from_material(material: str) -> ec.EllipticCurvePublicKey:
    """
    Parse uploaded public key material (JWK JSON string).

    Raises:
        InvalidPublicKeyError: If the material cannot be parsed.
    """
    try:
        jwk = json.loads(material)
    except (TypeError, ValueError) as e:
        raise InvalidPublicKeyError(f"Public key is not valid JSON: {e}") from e
    return public_key_from_jwk(jwk)
