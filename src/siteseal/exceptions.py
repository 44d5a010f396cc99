"""Exception hierarchy for siteseal.

Every failure surfaced to callers is a :class:`SitesealError` carrying a
stable machine-readable ``code``, a human-readable ``message`` and optional
``data`` for diagnostics. The categories mirror where a failure originates:
the filesystem, the cryptography layer, the ACME protocol, or domain
validation.
"""

from typing import Any


class SitesealError(Exception):
    """Base exception for all siteseal errors."""

    code: str = "siteseal_error"

    def __init__(self, message: str, data: Any = None, code: str | None = None):
        if code is not None:
            self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a ``{code, message, data}`` mapping."""
        return {"code": self.code, "message": self.message, "data": self.data}


# =============================================================================
# Filesystem errors
# =============================================================================


class FilesystemError(SitesealError):
    """A file or directory could not be created, read, written or removed."""

    code = "filesystem_error"

    def __init__(self, message: str, path: str | None = None, data: Any = None):
        self.path = path
        super().__init__(message, data=data)


class DirectoryCreateError(FilesystemError):
    code = "cannot_create_dir"


class DirectoryDeleteError(FilesystemError):
    code = "cannot_delete_dir"


class FileWriteError(FilesystemError):
    code = "cannot_write_file"


class PrivateKeyWriteError(FileWriteError):
    code = "private_key_cannot_write"


class PublicKeyWriteError(FileWriteError):
    code = "public_key_cannot_write"


class CannotWriteFullchain(FileWriteError):
    code = "new_cert_cannot_write_fullchain"


class CannotWriteCert(FileWriteError):
    code = "new_cert_cannot_write_cert"


class CannotWriteChain(FileWriteError):
    code = "new_cert_cannot_write_chain"


class CsrWriteError(FileWriteError):
    code = "csr_cannot_write"


class CannotReadCert(FilesystemError):
    code = "new_cert_cannot_read_cert"


class CannotCreateChallengeDir(DirectoryCreateError):
    code = "challenge_cannot_create_dir"


class CannotWriteChallengeFile(FileWriteError):
    code = "challenge_cannot_write_file"


class CertificateStoreError(FilesystemError):
    """The requested certificate is not stored locally."""

    code = "cert_not_exist"


class FilesystemCredentialsError(FilesystemError):
    """The caller reported that filesystem credentials are missing or invalid."""

    code = "invalid_filesystem_credentials"


# =============================================================================
# Cryptographic errors
# =============================================================================


class CryptoError(SitesealError):
    """A key, signature or CSR operation failed."""

    code = "crypto_error"


class KeyGenerationError(CryptoError):
    code = "private_key_cannot_generate"


class KeyExportError(CryptoError):
    code = "private_key_cannot_export"


class PrivateKeyMissingError(CryptoError):
    code = "private_key_missing"


class PrivateKeyInvalidError(CryptoError):
    code = "private_key_invalid"


class KeyDetailsError(CryptoError):
    code = "private_key_details_invalid"


class SigningError(CryptoError):
    code = "private_key_cannot_sign"


class CsrGenerationError(CryptoError):
    code = "csr_cannot_generate"


class CsrExportError(CryptoError):
    code = "csr_cannot_export"


# =============================================================================
# Protocol errors
# =============================================================================


class ProtocolError(SitesealError):
    """The ACME server could not be reached or answered unexpectedly."""

    code = "protocol_error"


class TransportError(ProtocolError):
    """The HTTP request itself failed (connection, timeout, TLS)."""

    code = "http_request_failed"


class NoNonceAvailable(ProtocolError):
    code = "signed_request_no_nonce"


class UnexpectedResponseError(ProtocolError):
    """The server answered with a status code the protocol step does not allow."""

    code = "invalid_response_code"

    def __init__(self, message: str, status_code: int | None = None, data: Any = None, code: str | None = None):
        self.status_code = status_code
        super().__init__(message, data=data, code=code)


class NoCertificatesError(ProtocolError):
    code = "new_cert_fail"


class AcmeError(ProtocolError):
    """Error returned by the ACME server as a problem document.

    The ``type`` URN becomes the error code with colons replaced by
    underscores, prefixed with ``letsencrypt_``. The ``detail`` field
    becomes the message.
    """

    def __init__(
        self,
        type: str | None,
        detail: str,
        status_code: int | None = None,
        retry_after: int | None = None,
        data: Any = None,
    ):
        self.type = type
        self.detail = detail
        self.status_code = status_code
        self.retry_after = retry_after
        code = "letsencrypt_" + type.replace(":", "_") if type else "letsencrypt_error"
        super().__init__(detail, data=data, code=code)

    @classmethod
    def from_response(
        cls,
        data: dict[str, Any],
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> "AcmeError":
        """Create an AcmeError from a decoded ACME error body.

        Routes to the appropriate subclass based on the error type.

        Args:
            data: Parsed JSON error response.
            status_code: HTTP status code (falls back to the body's ``status``).
            headers: Response headers (for Retry-After extraction).

        Returns:
            AcmeError instance (or appropriate subclass).
        """
        retry_after = None
        if headers:
            retry_after = cls._parse_retry_after(headers.get("Retry-After") or headers.get("retry-after"))
        error_type = data.get("type") or None
        if status_code is None and isinstance(data.get("status"), int):
            status_code = data["status"]

        kwargs: dict[str, Any] = {
            "type": error_type,
            "detail": data.get("detail") or "Unknown error",
            "status_code": status_code,
            "retry_after": retry_after,
            "data": data,
        }

        if error_type == "urn:acme:error:rateLimited":
            return RateLimitError(**kwargs)
        elif error_type == "urn:acme:error:badNonce":
            return BadNonceError(**kwargs)
        elif error_type == "urn:acme:error:unauthorized":
            return UnauthorizedError(**kwargs)
        elif error_type == "urn:acme:error:serverInternal":
            return ServerInternalError(**kwargs)

        return cls(**kwargs)

    @staticmethod
    def _parse_retry_after(value: str | None) -> int | None:
        """Parse Retry-After header (seconds or HTTP-date)."""
        if not value:
            return None
        try:
            return int(value)
        except ValueError:
            from datetime import datetime, timezone
            from email.utils import parsedate_to_datetime

            try:
                dt = parsedate_to_datetime(value)
            except (TypeError, ValueError):
                return None
            return max(0, int((dt - datetime.now(timezone.utc)).total_seconds()))


class RateLimitError(AcmeError):
    """Rate limit exceeded (urn:acme:error:rateLimited)."""

    pass


class BadNonceError(AcmeError):
    """Server rejected the replay nonce (urn:acme:error:badNonce)."""

    pass


class UnauthorizedError(AcmeError):
    """Account is not authorized for the action (urn:acme:error:unauthorized)."""

    pass


class ServerInternalError(AcmeError):
    """ACME server internal error (urn:acme:error:serverInternal)."""

    pass


# =============================================================================
# Validation errors
# =============================================================================


class ValidationError(SitesealError):
    """Domain control could not be proven."""

    code = "validation_error"


class NoChallengeAvailable(ValidationError):
    code = "no_challenge_available"


class ChallengeSelfCheckFailed(ValidationError):
    code = "challenge_self_check_failed"


class ChallengeRemoteCheckFailed(ValidationError):
    code = "challenge_remote_check_failed"


# =============================================================================
# Polling control
# =============================================================================


class PollTimeoutError(SitesealError):
    """A polling loop did not reach a terminal state before its deadline."""

    code = "poll_timeout"


class OperationCancelled(SitesealError):
    """The caller cancelled a running operation between polling iterations."""

    code = "operation_cancelled"
