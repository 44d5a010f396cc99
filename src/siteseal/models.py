"""Pydantic models for ACME v1 resources and siteseal results."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# ACME v1 Protocol Enums
# =============================================================================


class ChallengeStatus(StrEnum):
    """Challenge and authorization statuses."""

    PENDING = "pending"
    PROCESSING = "processing"
    VALID = "valid"
    INVALID = "invalid"


class ChallengeType(StrEnum):
    """Challenge types siteseal can answer."""

    HTTP_01 = "http-01"


class IdentifierType(StrEnum):
    DNS = "dns"


class Resource(StrEnum):
    """Values of the ``resource`` field every ACME v1 payload carries."""

    NEW_REG = "new-reg"
    REG = "reg"
    NEW_AUTHZ = "new-authz"
    CHALLENGE = "challenge"
    NEW_CERT = "new-cert"
    REVOKE_CERT = "revoke-cert"


# =============================================================================
# Pydantic Models
# =============================================================================


class Identifier(BaseModel):
    type: str
    value: str


class Challenge(BaseModel):
    """ACME v1 challenge object as offered inside an authorization.

    Only ``type`` is required: an authorization offering a challenge this
    library does not answer, or one shaped differently, still parses. The
    resolver checks ``uri`` and ``token`` on the challenge it selects.
    """

    type: str
    uri: str | None = None
    token: str | None = None
    status: str = ChallengeStatus.PENDING
    error: dict[str, Any] | None = None

    model_config = ConfigDict(extra="allow")


class Authorization(BaseModel):
    """ACME v1 authorization resource (response to new-authz)."""

    identifier: Identifier
    status: str | None = None
    challenges: list[Challenge] = Field(default_factory=list)
    combinations: list[list[int]] | None = None
    expires: datetime | None = None

    model_config = ConfigDict(extra="allow")

    def find_challenge(self, challenge_type: str) -> Challenge | None:
        """Return the first offered challenge of the given type, if any."""
        for challenge in self.challenges:
            if challenge.type == challenge_type:
                return challenge
        return None


class DistinguishedName(BaseModel):
    """Organisational subject fields placed into the CSR."""

    ST: str = "United States of America"
    C: str = Field(default="US", min_length=2, max_length=2)
    O: str = "Unknown"  # noqa: E741


class KeyDetails(BaseModel):
    """Public numbers of an RSA key, as needed to build a JWK."""

    bits: int
    modulus: bytes
    exponent: bytes
    public_pem: str


class AccountData(BaseModel):
    """Registration resource returned by the server, plus its URL.

    The server's fields are kept verbatim (``contact``, ``agreement``,
    ``key``, ``createdAt``...).
    """

    location: str | None = None

    model_config = ConfigDict(extra="allow")


class CertificateResult(BaseModel):
    """Result of certificate issuance."""

    domains: list[str]
    certificate_count: int
    issued_at: datetime
