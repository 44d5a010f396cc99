"""PEM certificate artifacts stored per domain."""

from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from siteseal._logging import get_logger
from siteseal.config import Settings
from siteseal.crypto import create_csr, der_to_pem, pem_body
from siteseal.exceptions import (
    CannotReadCert,
    CannotWriteCert,
    CannotWriteChain,
    CannotWriteFullchain,
    CsrExportError,
    CsrGenerationError,
    CsrWriteError,
    DirectoryCreateError,
)
from siteseal.filesystem import Filesystem, LocalFilesystem
from siteseal.models import DistinguishedName

logger = get_logger(__name__)

CSR_BEGIN = "-----BEGIN CERTIFICATE REQUEST-----"
CSR_END = "-----END CERTIFICATE REQUEST-----"


class CertificateStore:
    """Leaf, chain and fullchain PEM files for one root domain.

    Files live in ``certs_root/{domain}`` next to the domain key pair.
    """

    FULLCHAIN_NAME = "fullchain.pem"
    CERT_NAME = "cert.pem"
    CHAIN_NAME = "chain.pem"
    CSR_NAME = "last.csr"

    def __init__(self, domain: str, settings: Settings, filesystem: Filesystem | None = None):
        self.domain = domain
        self.fs = filesystem or LocalFilesystem()
        self.path = Path(settings.certs_root) / domain

    @property
    def cert_path(self) -> Path:
        return self.path / self.CERT_NAME

    @property
    def chain_path(self) -> Path:
        return self.path / self.CHAIN_NAME

    @property
    def fullchain_path(self) -> Path:
        return self.path / self.FULLCHAIN_NAME

    @property
    def csr_path(self) -> Path:
        return self.path / self.CSR_NAME

    def exists(self) -> bool:
        """Return True if leaf, chain and fullchain files are all present."""
        return all(self.fs.exists(p) for p in (self.fullchain_path, self.cert_path, self.chain_path))

    def set(self, certs: list[bytes]) -> None:
        """Write the issued certificates.

        Args:
            certs: DER certificates, leaf first, then its issuers in order.

        Raises:
            CannotWriteFullchain: If fullchain.pem cannot be written.
            CannotWriteCert: If cert.pem cannot be written.
            CannotWriteChain: If chain.pem cannot be written.
        """
        if not certs:
            raise ValueError("At least one certificate is required")

        pems = [der_to_pem(cert) for cert in certs]
        self._ensure_dir()

        writes = (
            (self.fullchain_path, "\n".join(pems), CannotWriteFullchain, "Could not write certificates to file"),
            (self.cert_path, pems[0], CannotWriteCert, "Could not write certificate to file"),
            (self.chain_path, "\n".join(pems[1:]), CannotWriteChain, "Could not write certificates to file"),
        )
        for path, content, error, message in writes:
            try:
                self.fs.write(path, content, mode=0o644)
            except OSError as e:
                raise error(f"{message} {path}.", path=str(path)) from e

        logger.info(
            "Certificate stored",
            extra={"domain": self.domain, "path": str(self.path), "chain_length": len(pems) - 1},
        )

    def read(self) -> str:
        """Return the base64 body of the leaf certificate without PEM armour.

        Raises:
            CannotReadCert: If cert.pem is missing or not PEM.
        """
        try:
            pem = self.fs.read(self.cert_path).decode("ascii")
            return pem_body(pem)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise CannotReadCert(
                f"Could not read certificate from file {self.cert_path}.",
                path=str(self.cert_path),
            ) from e

    def delete(self) -> None:
        """Remove the certificate artifacts of this domain."""
        for path in (self.fullchain_path, self.cert_path, self.chain_path, self.csr_path):
            self.fs.delete(path)

    def generate_csr(
        self,
        private_key: rsa.RSAPrivateKey,
        domains: list[str],
        dn: DistinguishedName | None = None,
    ) -> str:
        """Build a CSR for ``domains`` and keep a copy in ``last.csr``.

        Returns:
            The base64 DER body of the CSR, without PEM armour.

        Raises:
            CsrGenerationError: If the CSR cannot be built or signed.
            CsrExportError: If the CSR cannot be serialised.
            CsrWriteError: If last.csr cannot be written.
        """
        try:
            csr = create_csr(private_key, domains, dn)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CsrGenerationError(f"Could not generate CSR. Original error message: {e}") from e

        try:
            csr_pem = csr.public_bytes(serialization.Encoding.PEM).decode("ascii")
        except (ValueError, TypeError) as e:
            raise CsrExportError(f"Could not export CSR. Original error message: {e}") from e

        self._ensure_dir()
        try:
            self.fs.write(self.csr_path, csr_pem)
        except OSError as e:
            raise CsrWriteError(f"Could not write CSR into file {self.csr_path}.", path=str(self.csr_path)) from e

        logger.debug("CSR generated", extra={"domain": self.domain, "domains": domains})
        return pem_body(csr_pem, CSR_BEGIN, CSR_END)

    def _ensure_dir(self) -> None:
        if self.fs.is_dir(self.path):
            return
        try:
            self.fs.mkdir(self.path, 0o700)
        except OSError as e:
            raise DirectoryCreateError(f"Could not create directory {self.path}.", path=str(self.path)) from e


class CertificateStoreCache:
    """Mapping from root domain to its :class:`CertificateStore`."""

    def __init__(self, settings: Settings, filesystem: Filesystem | None = None):
        self.settings = settings
        self.fs = filesystem or LocalFilesystem()
        self._stores: dict[str, CertificateStore] = {}

    def get(self, domain: str) -> CertificateStore:
        if domain not in self._stores:
            self._stores[domain] = CertificateStore(domain, self.settings, self.fs)
        return self._stores[domain]

    def clear(self) -> None:
        self._stores.clear()
