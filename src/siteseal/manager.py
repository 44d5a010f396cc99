"""Certificate lifecycle orchestration."""

import base64
import threading
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

import httpx

from siteseal._logging import Timer, domain_context, get_logger, log_extra
from siteseal.certificate import CertificateStoreCache
from siteseal.challenges.http01 import ChallengeResolver
from siteseal.config import Settings
from siteseal.crypto import pem_body
from siteseal.domains import get_all_domains
from siteseal.exceptions import (
    AcmeError,
    CertificateStoreError,
    DirectoryDeleteError,
    FilesystemCredentialsError,
    NoCertificatesError,
    UnexpectedResponseError,
)
from siteseal.filesystem import Filesystem, LocalFilesystem
from siteseal.jws import JwsSigner
from siteseal.keys import AccountKeyPair, KeyPairCache
from siteseal.models import AccountData, CertificateResult, DistinguishedName
from siteseal.polling import Poller
from siteseal.transport import AcmeTransport, Body

logger = get_logger(__name__)


class CertificateManager:
    """Registers the account, issues and revokes certificates.

    The manager owns the account key pair, the transport and the per-domain
    caches; construct one per logical client and close it when done.
    Operations for the same domain must not run concurrently.

    Args:
        settings: Runtime settings, defaults when omitted.
        filesystem: Storage backend, local disk by default.
        http: Optional preconfigured httpx client.
        filesystem_ready: Result of the caller's filesystem credential check.
            Operations that write refuse to run when False.
        sleep: Sleep function used between polling attempts.
        clock: Monotonic clock used for polling deadlines.
        cancel: Event the caller may set to abort polling.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        filesystem: Filesystem | None = None,
        http: httpx.Client | None = None,
        filesystem_ready: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        cancel: threading.Event | None = None,
    ):
        self.settings = settings or Settings()
        self.fs = filesystem or LocalFilesystem()
        self.filesystem_ready = filesystem_ready

        self.account_key = AccountKeyPair(self.settings, self.fs)
        self.transport = AcmeTransport(self.settings, JwsSigner(self.account_key), http=http)
        self.poller = Poller(
            interval=self.settings.poll_interval,
            timeout=self.settings.poll_timeout,
            sleep=sleep,
            clock=clock,
            cancel=cancel,
        )
        self.resolver = ChallengeResolver(self.transport, self.settings, self.poller, self.fs)
        self.domain_keys = KeyPairCache(self.settings, self.fs)
        self.certificates = CertificateStoreCache(self.settings, self.fs)

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "CertificateManager":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def register_account(self) -> AccountData:
        """Register the account key with the ACME server.

        Generates the account key pair on first use. Registering a key the
        server already knows is not an error: the existing registration is
        fetched and returned.

        Returns:
            The registration resource merged with its ``location``.

        Raises:
            AcmeError: If the server rejects the registration.
        """
        self._require_filesystem()
        self.account_key.ensure()

        body = self.transport.register()
        status = self.transport.state.status_code
        location = self.transport.state.location

        if status == 409:
            logger.info("Account already registered", extra={"location": location})
            return self._existing_account(location)

        if status not in (200, 201, 202):
            raise AcmeError.from_response(
                body if isinstance(body, dict) else {}, status, headers=self.transport.state.headers
            )

        logger.info("Account registered", extra={"location": location})
        return AccountData.model_validate({**_as_dict(body), "location": location})

    def generate_certificate(
        self,
        domain: str,
        addon_domains: Iterable[str] = (),
        dn: DistinguishedName | dict[str, str] | None = None,
    ) -> CertificateResult:
        """Validate every domain and issue one certificate covering all of them.

        Args:
            domain: Root domain; keys and certificates are stored under it.
            addon_domains: Further domains to include as SANs.
            dn: Subject fields (``ST``, ``C``, ``O``) for the CSR.

        Returns:
            The domains the certificate covers.

        Raises:
            SitesealError: The first failure of any step; nothing is written
                before every domain has been validated.
        """
        self._require_filesystem()
        if not isinstance(dn, DistinguishedName):
            dn = DistinguishedName.model_validate(dn or {})

        all_domains = get_all_domains(domain, addon_domains)
        with domain_context(all_domains):
            with Timer() as t:
                self.account_key.get_private_details()

                for name in all_domains:
                    self.resolver.validate(name)

                domain_key = self.domain_keys.get(domain).ensure()
                store = self.certificates.get(domain)
                csr = store.generate_csr(domain_key, all_domains, dn)

                body = self.transport.new_certificate(csr)
                self.transport.expect_status(
                    body,
                    201,
                    code="new_cert_invalid_response_code",
                    message="Invalid response code for new certificate request.",
                )
                location = self.transport.state.location
                if not location:
                    raise UnexpectedResponseError(
                        "New certificate response has no location.",
                        status_code=self.transport.state.status_code,
                        code="new_cert_no_location",
                    )

                certs = self._collect_certificates(location)
                if not certs:
                    raise NoCertificatesError("No certificates generated.")
                store.set(certs)

            logger.info(
                "Certificate issued",
                extra=log_extra(elapsed_ms=t.elapsed_ms, chain_length=len(certs) - 1),
            )

        return CertificateResult(
            domains=all_domains,
            certificate_count=len(certs),
            issued_at=datetime.now(UTC),
        )

    def revoke_certificate(self, domain: str) -> bool:
        """Revoke the stored certificate of ``domain``.

        Raises:
            CertificateStoreError: If no certificate is stored for the domain.
            AcmeError: If the server rejects the revocation.
        """
        self._require_filesystem()
        store = self.certificates.get(domain)
        if not store.exists():
            raise CertificateStoreError(
                f"The certificate {store.cert_path} does not exist.", path=str(store.cert_path)
            )

        body = self.transport.revoke(store.read())
        self.transport.expect_status(
            body,
            200,
            code="revoke_cert_invalid_response_code",
            message="Invalid response code for revoke certificate request.",
        )
        logger.info("Certificate revoked", extra={"domain": domain})
        return True

    def reset(self) -> bool:
        """Delete every stored key, certificate and challenge file.

        Raises:
            DirectoryDeleteError: For the first directory that cannot be removed.
        """
        self._require_filesystem()
        for path in (self.settings.certs_root, self.settings.challenges_dir):
            try:
                self.fs.rmtree(path)
            except OSError as e:
                raise DirectoryDeleteError(f"Could not delete directory {path}.", path=str(path)) from e

        self.account_key.clear_cache()
        self.domain_keys.clear()
        self.certificates.clear()
        logger.warning("All certificates and keys deleted", extra={"path": str(self.settings.certs_root)})
        return True

    def _existing_account(self, location: str | None) -> AccountData:
        if not location:
            return AccountData(location=None)
        body = self.transport.fetch_registration(location)
        self.transport.expect_status(
            body,
            200,
            201,
            202,
            code="reg_invalid_response_code",
            message="Invalid response code for registration lookup.",
        )
        return AccountData.model_validate({**_as_dict(body), "location": location})

    def _collect_certificates(self, location: str) -> list[bytes]:
        """Poll the issuance location, then follow the chain links."""
        deadline = self.poller.start()
        while True:
            body = self.transport.request(location, "GET")
            status = self.transport.state.status_code
            if status == 202:
                self.poller.wait(deadline, "Certificate issuance")
                continue
            self.transport.expect_status(
                body,
                200,
                code="new_cert_invalid_response_code",
                message="Invalid response code for new certificate request.",
            )
            break

        certs = [_as_der(body)]
        for link in list(self.transport.state.links):
            body = self.transport.request(link, "GET")
            self.transport.expect_status(
                body,
                200,
                code="chain_cert_invalid_response_code",
                message=f"Invalid response code for issuer certificate {link}.",
            )
            certs.append(_as_der(body))
        return certs

    def _require_filesystem(self) -> None:
        if not self.filesystem_ready:
            raise FilesystemCredentialsError("Invalid or missing filesystem credentials.")


def _as_dict(body: Body) -> dict[str, Any]:
    return body if isinstance(body, dict) else {}


def _as_der(body: Body) -> bytes:
    """Return a certificate body as DER, accepting PEM text as well."""
    if isinstance(body, bytes):
        return body
    if isinstance(body, str) and "-----BEGIN CERTIFICATE-----" in body:
        return base64.b64decode(pem_body(body))
    raise UnexpectedResponseError("Certificate response is not a certificate.", data=body, code="new_cert_invalid_body")
