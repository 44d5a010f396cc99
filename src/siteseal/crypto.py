"""Cryptographic utilities for ACME v1 protocol operations."""

import base64
import hashlib
import json
import textwrap

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.x509.oid import NameOID

from siteseal.models import DistinguishedName

CERT_BEGIN = "-----BEGIN CERTIFICATE-----"
CERT_END = "-----END CERTIFICATE-----"


def generate_rsa_key(key_size: int = 4096) -> rsa.RSAPrivateKey:
    """Generate an RSA private key.

    Args:
        key_size: Key size in bits.

    Returns:
        RSA private key.
    """
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def private_key_to_pem(key: rsa.RSAPrivateKey) -> str:
    """Export a private key as unencrypted traditional OpenSSL PEM."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def public_key_to_pem(key: rsa.RSAPrivateKey) -> str:
    """Export the public half of a private key as SubjectPublicKeyInfo PEM."""
    return (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("ascii")
    )


def load_private_key_pem(pem_data: str | bytes) -> rsa.RSAPrivateKey:
    """Load an RSA private key from PEM-encoded data.

    Raises:
        ValueError: If the PEM data is invalid or not an RSA key.
    """
    if isinstance(pem_data, str):
        pem_data = pem_data.encode("utf-8")
    try:
        key = serialization.load_pem_private_key(pem_data, password=None)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid PEM data: {e}") from e

    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError(f"Unsupported key type: {type(key).__name__}")

    return key


def base64url_encode(data: bytes | str) -> str:
    """Base64url encode without padding."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_decode(data: str) -> bytes:
    """Decode base64url data, restoring any stripped padding."""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _int_to_bytes(n: int) -> bytes:
    return n.to_bytes((n.bit_length() + 7) // 8, byteorder="big")


def get_jwk(key: rsa.RSAPrivateKey) -> dict[str, str]:
    """Get the JWK (JSON Web Key) representation of the key's public half.

    Members are in lexicographic order so the serialised form is the
    canonical one used for the thumbprint.
    """
    public_numbers = key.public_key().public_numbers()
    return {
        "e": base64url_encode(_int_to_bytes(public_numbers.e)),
        "kty": "RSA",
        "n": base64url_encode(_int_to_bytes(public_numbers.n)),
    }


def key_thumbprint(key: rsa.RSAPrivateKey) -> str:
    """Compute the JWK thumbprint of a key (RFC 7638).

    Returns:
        Base64url-encoded SHA-256 of the canonical JWK.
    """
    json_bytes = json.dumps(get_jwk(key), sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64url_encode(hashlib.sha256(json_bytes).digest())


def sign_jws(
    key: rsa.RSAPrivateKey,
    payload: dict,
    nonce: str,
    jwk: dict[str, str] | None = None,
) -> str:
    """Sign a payload as an RS256 JWS for ACME v1.

    The protected header embeds the JWK of the key; v1 servers identify the
    account by its key, not by a ``kid``.

    Args:
        key: Account private key.
        payload: JSON payload.
        nonce: Replay nonce from the server.
        jwk: Precomputed JWK of the key, derived from the key when omitted.

    Returns:
        JWS in compact serialization format (header.payload.signature).
    """
    protected = {
        "alg": "RS256",
        "jwk": jwk or get_jwk(key),
        "nonce": nonce,
    }

    protected_b64 = base64url_encode(json.dumps(protected, separators=(",", ":")))
    payload_b64 = base64url_encode(json.dumps(payload, separators=(",", ":")))

    signing_input = f"{protected_b64}.{payload_b64}".encode()
    signature = key.sign(signing_input, padding.PKCS1v15(), hashes.SHA256())

    return f"{protected_b64}.{payload_b64}.{base64url_encode(signature)}"


def create_csr(
    key: rsa.RSAPrivateKey,
    domains: list[str],
    dn: DistinguishedName | None = None,
) -> x509.CertificateSigningRequest:
    """Create a Certificate Signing Request (CSR).

    The first domain is the Common Name; the SAN extension lists every
    domain in the given order.

    Raises:
        ValueError: If domains list is empty.
    """
    if not domains:
        raise ValueError("At least one domain is required")

    dn = dn or DistinguishedName()
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, domains[0]),
            x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, dn.ST),
            x509.NameAttribute(NameOID.COUNTRY_NAME, dn.C),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, dn.O),
        ]
    )

    san = x509.SubjectAlternativeName([x509.DNSName(domain) for domain in domains])
    key_usage = x509.KeyUsage(
        digital_signature=True,
        content_commitment=True,
        key_encipherment=True,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=False,
        crl_sign=False,
        encipher_only=False,
        decipher_only=False,
    )

    builder = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(subject)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=False)
        .add_extension(key_usage, critical=False)
        .add_extension(san, critical=False)
    )
    return builder.sign(key, hashes.SHA256())


def der_to_pem(der: bytes) -> str:
    """Wrap a DER certificate in PEM armour with 64-column lines."""
    body = textwrap.fill(base64.b64encode(der).decode("ascii"), 64)
    return f"{CERT_BEGIN}\n{body}\n{CERT_END}\n"


def pem_body(pem: str, begin: str = CERT_BEGIN, end: str = CERT_END) -> str:
    """Strip PEM armour and line breaks, returning the bare base64 body.

    Raises:
        ValueError: If the armour markers are not found.
    """
    start = pem.find(begin)
    stop = pem.find(end, start + 1)
    if start == -1 or stop == -1:
        raise ValueError("PEM armour not found")
    return "".join(pem[start + len(begin) : stop].split())
