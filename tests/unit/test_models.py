"""Unit tests for ACME v1 models."""

import pytest
from pydantic import ValidationError

from siteseal.models import (
    AccountData,
    Authorization,
    ChallengeStatus,
    ChallengeType,
    DistinguishedName,
    Resource,
)

AUTHZ = {
    "identifier": {"type": "dns", "value": "example.org"},
    "status": "pending",
    "expires": "2016-01-01T00:00:00Z",
    "challenges": [
        {"type": "tls-sni-01", "uri": "https://acme.test/acme/challenge/1", "token": "sni", "status": "pending"},
        {"type": "http-01", "uri": "https://acme.test/acme/challenge/2", "token": "tok123", "status": "pending"},
        {"type": "dns-01", "uri": "https://acme.test/acme/challenge/3", "token": "dns", "status": "pending"},
    ],
    "combinations": [[0], [1], [2]],
}


class TestAuthorizationModel:
    """Tests for authorization parsing."""

    def test_parse_authorization(self):
        """Identifier, status, challenges and combinations are parsed."""
        authz = Authorization.model_validate(AUTHZ)

        assert authz.identifier.value == "example.org"
        assert authz.status == ChallengeStatus.PENDING
        assert len(authz.challenges) == 3
        assert authz.combinations == [[0], [1], [2]]

    def test_find_http_challenge(self):
        """The http-01 challenge is found among the offered ones."""
        authz = Authorization.model_validate(AUTHZ)

        challenge = authz.find_challenge(ChallengeType.HTTP_01)

        assert challenge is not None
        assert challenge.token == "tok123"
        assert challenge.uri == "https://acme.test/acme/challenge/2"

    def test_find_missing_challenge(self):
        """Without an http-01 offer nothing is found."""
        data = {**AUTHZ, "challenges": [AUTHZ["challenges"][2]]}
        assert Authorization.model_validate(data).find_challenge(ChallengeType.HTTP_01) is None

    def test_unknown_challenge_types_are_kept(self):
        """Challenge types this library does not answer still parse."""
        data = {
            "identifier": {"type": "dns", "value": "example.org"},
            "challenges": [{"type": "proofOfPossession-01", "uri": "https://acme.test/c", "token": "x"}],
        }
        authz = Authorization.model_validate(data)
        assert authz.challenges[0].type == "proofOfPossession-01"

    def test_missing_identifier_fails(self):
        """An authorization without identifier is rejected."""
        with pytest.raises(ValidationError):
            Authorization.model_validate({"challenges": []})

    def test_sibling_challenge_without_token(self):
        """A sibling challenge lacking token and uri does not spoil the parse."""
        data = {
            **AUTHZ,
            "challenges": [
                {"type": "tls-sni-01", "uri": "https://acme.test/acme/challenge/1"},
                {"type": "proofOfPossession-01"},
                AUTHZ["challenges"][1],
            ],
        }

        challenge = Authorization.model_validate(data).find_challenge(ChallengeType.HTTP_01)

        assert challenge is not None
        assert challenge.token == "tok123"

    def test_challenge_needs_only_type(self):
        """uri and token are optional on the model."""
        authz = Authorization.model_validate({**AUTHZ, "challenges": [{"type": "http-01"}]})

        challenge = authz.find_challenge(ChallengeType.HTTP_01)
        assert challenge is not None
        assert (challenge.uri, challenge.token) == (None, None)


class TestDistinguishedName:
    """Tests for CSR subject fields."""

    def test_defaults(self):
        """Unset fields fall back to the defaults."""
        dn = DistinguishedName()
        assert (dn.ST, dn.C, dn.O) == ("United States of America", "US", "Unknown")

    def test_from_caller_mapping(self):
        """A caller mapping with ST, C and O is accepted."""
        dn = DistinguishedName.model_validate({"ST": "Berlin", "C": "DE", "O": "Example"})
        assert dn.C == "DE"

    def test_country_code_must_have_two_letters(self):
        """Country codes longer than two letters are rejected."""
        with pytest.raises(ValidationError):
            DistinguishedName(C="DEU")


class TestAccountData:
    """Tests for registration data."""

    def test_server_fields_are_kept(self):
        """Fields returned by the server survive a dump."""
        account = AccountData.model_validate(
            {"location": "https://acme.test/acme/reg/1", "agreement": "https://example.com/tos.pdf", "id": 1}
        )

        assert account.location == "https://acme.test/acme/reg/1"
        assert account.model_dump()["agreement"] == "https://example.com/tos.pdf"

    def test_location_may_be_missing(self):
        """An account without Location is valid."""
        assert AccountData().location is None


def test_resource_values_match_protocol():
    """Resource values are the ACME v1 resource names."""
    assert Resource.NEW_REG == "new-reg"
    assert Resource.NEW_AUTHZ == "new-authz"
    assert Resource.NEW_CERT == "new-cert"
    assert Resource.REVOKE_CERT == "revoke-cert"


def test_only_http_challenges_are_answered():
    """http-01 is the only challenge type on offer."""
    assert [t.value for t in ChallengeType] == ["http-01"]


def test_challenge_status_vocabulary():
    """Statuses are the ones ACME v1 reports for challenges and authorizations."""
    assert {s.value for s in ChallengeStatus} == {"pending", "processing", "valid", "invalid"}
