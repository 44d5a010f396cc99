"""HTTP transport for the ACME v1 API."""

import base64
import json
import re
from typing import Any

import httpx
from pydantic import BaseModel, Field

from siteseal._logging import get_logger, log_extra
from siteseal.config import Settings
from siteseal.crypto import base64url_encode
from siteseal.exceptions import AcmeError, NoNonceAvailable, TransportError, UnexpectedResponseError
from siteseal.jws import JwsSigner
from siteseal.models import IdentifierType, Resource

logger = get_logger(__name__)

ENDPOINT_REGISTER = "acme/new-reg"
ENDPOINT_AUTH = "acme/new-authz"
ENDPOINT_NEW = "acme/new-cert"
ENDPOINT_REVOKE = "acme/revoke-cert"
ENDPOINT_DIRECTORY = "directory"

_UP_LINK = re.compile(r'<([^>]+)>\s*;\s*rel="?up"?(?=\s*(?:[;,]|$))')

# Decoded response body: JSON, text, or raw bytes (DER certificates)
Body = dict[str, Any] | list[Any] | str | bytes


class TransportState(BaseModel):
    """What the last response told us that later steps depend on."""

    status_code: int | None = None
    nonce: str | None = None
    location: str | None = None
    links: list[str] = Field(default_factory=list)
    headers: dict[str, str] = Field(default_factory=dict)

    def consume_nonce(self) -> str | None:
        """Return the cached nonce and forget it, so it is never sent twice."""
        nonce, self.nonce = self.nonce, None
        return nonce


class AcmeTransport:
    """Low-level client for the ACME v1 API.

    Tracks the status code, replay nonce, ``Location`` and ``rel="up"``
    links of the last response in :attr:`state`.

    Args:
        settings: Runtime settings (API URL, timeout, TLS verification).
        signer: JWS signer holding the account key.
        http: Optional preconfigured httpx client.
    """

    def __init__(
        self,
        settings: Settings,
        signer: JwsSigner,
        http: httpx.Client | None = None,
    ):
        self.settings = settings
        self.signer = signer
        self._owns_http = http is None
        self.http = http or httpx.Client(verify=settings.httpx_verify, timeout=settings.http_timeout)
        self.state = TransportState()

    def close(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "AcmeTransport":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def resolve(self, endpoint: str) -> str:
        """Return an absolute URL for a relative endpoint or absolute URL."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.settings.api_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def request(self, endpoint: str, method: str = "GET", body: dict[str, Any] | None = None) -> Body:
        """Issue one HTTP call and record its state.

        Args:
            endpoint: Endpoint relative to the API URL, or an absolute URL.
            method: HTTP method.
            body: JSON body to send.

        Returns:
            Decoded JSON, or the raw body when it is not JSON.

        Raises:
            TransportError: If the request fails at the network level.
        """
        url = self.resolve(endpoint)
        headers = {"Accept": "application/json"}
        content = None
        if body is not None:
            content = json.dumps(body)
            headers["Content-Type"] = "application/json"

        try:
            response = self.http.request(
                method.upper(),
                url,
                content=content,
                headers=headers,
                timeout=self.settings.http_timeout,
            )
        except httpx.HTTPError as e:
            logger.error("ACME request failed", extra=log_extra(url=url, error=str(e)))
            raise TransportError(f"Request to {url} failed: {e}", data={"url": url}) from e

        self._update_state(response)
        logger.debug(
            "ACME request",
            extra={"method": method.upper(), "url": url, "status_code": response.status_code},
        )
        return self._parse_body(response)

    def signed_request(self, endpoint: str, payload: dict[str, Any]) -> Body:
        """POST a JWS-signed payload.

        Uses the nonce of the previous response, or fetches the directory
        to obtain one.

        Raises:
            NoNonceAvailable: If the server provides no nonce.
            SigningError: If the payload cannot be signed.
        """
        nonce = self.state.consume_nonce()
        if nonce is None:
            self.directory()
            nonce = self.state.consume_nonce()
        if nonce is None:
            raise NoNonceAvailable("No nonce available for a signed request.")

        envelope = self.signer.sign(payload, nonce)
        return self.request(endpoint, "POST", envelope)

    def fetch_text(self, url: str) -> str:
        """Plain GET outside the ACME API; does not touch :attr:`state`.

        Raises:
            TransportError: If the request fails or the status is not 200.
        """
        try:
            response = self.http.get(url, timeout=self.settings.http_timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}", data={"url": url}) from e
        return response.text

    def expect_status(self, body: Body, *expected: int, code: str, message: str) -> None:
        """Raise unless the last response had one of the ``expected`` codes.

        Problem documents become :class:`AcmeError`; anything else becomes
        :class:`UnexpectedResponseError` with the given code and message.
        """
        status = self.state.status_code
        if status in expected:
            return
        if isinstance(body, dict) and ("type" in body or "detail" in body):
            raise AcmeError.from_response(body, status, headers=self.state.headers)
        raise UnexpectedResponseError(message, status_code=status, data=body, code=code)

    # ------------------------------------------------------------------
    # ACME v1 resources
    # ------------------------------------------------------------------

    def directory(self) -> Body:
        return self.request(ENDPOINT_DIRECTORY, "GET")

    def register(self, agreement: str | None = None) -> Body:
        return self.signed_request(
            ENDPOINT_REGISTER,
            {
                "resource": Resource.NEW_REG,
                "agreement": agreement or self.settings.agreement_url,
            },
        )

    def fetch_registration(self, url: str) -> Body:
        """Retrieve an existing registration resource."""
        return self.signed_request(url, {"resource": Resource.REG})

    def new_authorization(self, domain: str) -> Body:
        return self.signed_request(
            ENDPOINT_AUTH,
            {
                "resource": Resource.NEW_AUTHZ,
                "identifier": {"type": IdentifierType.DNS, "value": domain},
            },
        )

    def answer_challenge(self, uri: str, token: str, key_authorization: str) -> Body:
        return self.signed_request(
            uri,
            {
                "resource": Resource.CHALLENGE,
                "type": "http-01",
                "keyAuthorization": key_authorization,
                "token": token,
            },
        )

    def new_certificate(self, csr_b64: str) -> Body:
        """Submit a CSR given as standard base64 DER."""
        return self.signed_request(
            ENDPOINT_NEW,
            {
                "resource": Resource.NEW_CERT,
                "csr": base64url_encode(base64.b64decode(csr_b64)),
            },
        )

    def revoke(self, cert_b64: str) -> Body:
        """Revoke a certificate given as standard base64 DER."""
        return self.signed_request(
            ENDPOINT_REVOKE,
            {
                "resource": Resource.REVOKE_CERT,
                "certificate": base64url_encode(base64.b64decode(cert_b64)),
            },
        )

    # ------------------------------------------------------------------

    def _update_state(self, response: httpx.Response) -> None:
        links: list[str] = []
        for value in response.headers.get_list("Link"):
            links.extend(_UP_LINK.findall(value))
        self.state = TransportState(
            status_code=response.status_code,
            nonce=response.headers.get("Replay-Nonce"),
            location=response.headers.get("Location"),
            links=links,
            headers={key.lower(): value for key, value in response.headers.items()},
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> Body:
        if response.content:
            try:
                return response.json()
            except ValueError:
                pass
        content_type = response.headers.get("Content-Type", "")
        if content_type.startswith("text/") or "json" in content_type or not response.content:
            return response.text
        return response.content
