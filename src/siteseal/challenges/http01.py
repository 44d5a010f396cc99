"""HTTP-01 challenge implementation."""

import json
import re
from pathlib import Path

import pydantic

from siteseal._logging import Timer, domain_context, get_logger, log_extra
from siteseal.config import Settings
from siteseal.exceptions import (
    CannotCreateChallengeDir,
    CannotWriteChallengeFile,
    ChallengeRemoteCheckFailed,
    ChallengeSelfCheckFailed,
    NoChallengeAvailable,
    TransportError,
)
from siteseal.filesystem import Filesystem, LocalFilesystem
from siteseal.models import Authorization, Challenge, ChallengeStatus, ChallengeType
from siteseal.polling import Poller
from siteseal.transport import AcmeTransport, Body

logger = get_logger(__name__)

# Tokens become file names below the challenge directory
_TOKEN = re.compile(r"[A-Za-z0-9_-]+")


def compute_key_authorization(token: str, thumbprint: str) -> str:
    """Compute the key authorization string.

    The key authorization is the token concatenated with the account
    key thumbprint, separated by a period.

    Args:
        token: The challenge token from the ACME server.
        thumbprint: The base64url-encoded SHA-256 thumbprint of the account key.

    Returns:
        The key authorization string (token.thumbprint).
    """
    return f"{token}.{thumbprint}"


class ChallengeResolver:
    """Proves control of a domain by serving a token over plain HTTP.

    For each domain: request an authorization, pick its ``http-01``
    challenge, write the key authorization below the web root, fetch it
    back to make sure the web server serves it, let the ACME server check
    it and poll the authorization until it is final. The token file is
    removed on every exit path.

    Args:
        transport: ACME transport (also used for the self check).
        settings: Runtime settings.
        poller: Polling policy for the remote validation.
        filesystem: Storage backend for the token file.
    """

    def __init__(
        self,
        transport: AcmeTransport,
        settings: Settings,
        poller: Poller,
        filesystem: Filesystem | None = None,
    ):
        self.transport = transport
        self.settings = settings
        self.poller = poller
        self.fs = filesystem or LocalFilesystem()

    @property
    def directory(self) -> Path:
        return Path(self.settings.challenges_dir)

    def self_check_url(self, domain: str, token: str) -> str:
        if self.settings.self_check_base_url:
            return f"{self.settings.self_check_base_url.rstrip('/')}/{token}"
        return f"http://{domain}/.well-known/acme-challenge/{token}"

    def validate(self, domain: str) -> Challenge:
        """Validate control of ``domain``.

        Returns:
            The completed challenge, with status ``valid``.

        Raises:
            NoChallengeAvailable: If the server offers no http-01 challenge.
            CannotCreateChallengeDir: If the challenge directory cannot be created.
            CannotWriteChallengeFile: If the token file cannot be written.
            ChallengeSelfCheckFailed: If the token is not served as written.
            ChallengeRemoteCheckFailed: If the server marks the challenge invalid.
            PollTimeoutError: If the server does not decide before the deadline.
        """
        with domain_context([domain]):
            with Timer() as t:
                challenge = self._validate(domain)
            logger.info("Domain validated", extra=log_extra(elapsed_ms=t.elapsed_ms))
        return challenge

    def _validate(self, domain: str) -> Challenge:
        body = self.transport.new_authorization(domain)
        self.transport.expect_status(
            body,
            200,
            201,
            code="new_authz_invalid_response_code",
            message=f"Invalid response code for authorization request for domain {domain}.",
        )
        location = self.transport.state.location

        challenge = self._select_challenge(domain, body)
        key_authorization = compute_key_authorization(challenge.token, self.transport.signer.thumbprint)

        token_path = self._publish(challenge.token, key_authorization)
        try:
            if self.settings.self_check:
                self._self_check(domain, challenge.token, key_authorization)
            result = self.transport.answer_challenge(challenge.uri, challenge.token, key_authorization)
            self.transport.expect_status(
                result,
                200,
                201,
                202,
                code="challenge_invalid_response_code",
                message=f"Invalid response code for challenge response for domain {domain}.",
            )
            self._poll(domain, location or challenge.uri, result)
        finally:
            self._cleanup(token_path)

        return challenge.model_copy(update={"status": ChallengeStatus.VALID})

    def _select_challenge(self, domain: str, body: Body) -> Challenge:
        challenge = None
        if isinstance(body, dict):
            try:
                challenge = Authorization.model_validate(body).find_challenge(ChallengeType.HTTP_01)
            except pydantic.ValidationError:
                challenge = None
        if challenge is None or not challenge.uri or not challenge.token:
            raw = json.dumps(body) if isinstance(body, (dict, list)) else repr(body)
            raise NoChallengeAvailable(
                f"No HTTP challenge available for domain {domain}. Original response: {raw}",
                data=body,
            )
        if not _TOKEN.fullmatch(challenge.token):
            raise NoChallengeAvailable(
                f"Invalid HTTP challenge token for domain {domain}: {challenge.token!r}",
                data=body,
            )
        return challenge

    def _publish(self, token: str, key_authorization: str) -> Path:
        directory = self.directory
        if not self.fs.is_dir(directory):
            try:
                self.fs.mkdir(directory, 0o755)
            except OSError as e:
                raise CannotCreateChallengeDir(
                    f"Could not create challenge directory {directory}.", path=str(directory)
                ) from e

        token_path = directory / token
        try:
            self.fs.write(token_path, key_authorization, mode=0o644)
        except OSError as e:
            self._cleanup(token_path)
            raise CannotWriteChallengeFile(
                f"Could not write challenge to file {token_path}.", path=str(token_path)
            ) from e

        logger.debug("Challenge token published", extra=log_extra(path=str(token_path)))
        return token_path

    def _self_check(self, domain: str, token: str, key_authorization: str) -> None:
        url = self.self_check_url(domain, token)
        try:
            served = self.transport.fetch_text(url)
        except TransportError as e:
            raise ChallengeSelfCheckFailed(
                f"Challenge request failed for domain {domain}.", data={"url": url}
            ) from e
        if served.strip() != key_authorization:
            raise ChallengeSelfCheckFailed(
                f"Challenge self check failed for domain {domain}.", data={"url": url}
            )

    def _poll(self, domain: str, url: str, result: Body) -> None:
        deadline = self.poller.start()
        while True:
            status = result.get("status") if isinstance(result, dict) else None
            if status == ChallengeStatus.VALID:
                return
            if status not in (ChallengeStatus.PENDING, ChallengeStatus.PROCESSING):
                logger.warning(
                    "Challenge remote check failed",
                    extra=log_extra(status=status),
                )
                raise ChallengeRemoteCheckFailed(
                    f"Challenge remote check failed for domain {domain}.", data=result
                )
            self.poller.wait(deadline, f"Validation of {domain}")
            result = self.transport.request(url, "GET")

    def _cleanup(self, token_path: Path) -> None:
        try:
            self.fs.delete(token_path)
        except OSError as e:
            logger.warning(
                "Could not remove challenge token",
                extra=log_extra(path=str(token_path), error=str(e)),
            )
