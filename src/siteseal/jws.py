"""JSON Web Signature envelopes for authenticated ACME v1 calls."""

from typing import Any

from cryptography.exceptions import UnsupportedAlgorithm

from siteseal.crypto import base64url_encode, key_thumbprint, sign_jws
from siteseal.exceptions import SigningError
from siteseal.keys import KeyPair


class JwsSigner:
    """Signs ACME payloads with the account key.

    The envelope has the four members ACME v1 expects: an unprotected
    ``header`` with ``alg`` and ``jwk``, the base64url ``protected`` header
    (which also carries the nonce), the base64url ``payload`` and the RS256
    ``signature``.

    Args:
        key_pair: The account key pair.
    """

    ALGORITHM = "RS256"

    def __init__(self, key_pair: KeyPair):
        self.key_pair = key_pair

    @property
    def jwk(self) -> dict[str, str]:
        """JWK of the account key built from its modulus and exponent."""
        details = self.key_pair.get_private_details()
        return {
            "e": base64url_encode(details.exponent),
            "kty": "RSA",
            "n": base64url_encode(details.modulus),
        }

    @property
    def thumbprint(self) -> str:
        return key_thumbprint(self.key_pair.read_private())

    def sign(self, payload: dict[str, Any], nonce: str) -> dict[str, Any]:
        """Build the signed envelope for one request.

        Raises:
            SigningError: If the signature cannot be computed.
        """
        key = self.key_pair.read_private()
        jwk = self.jwk
        try:
            jws = sign_jws(key, payload, nonce, jwk=jwk)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningError(f"Could not sign request with private key. Original error message: {e}") from e

        protected_b64, payload_b64, signature_b64 = jws.split(".")
        return {
            "header": {"alg": self.ALGORITHM, "jwk": jwk},
            "protected": protected_b64,
            "payload": payload_b64,
            "signature": signature_b64,
        }
