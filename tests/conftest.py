"""Pytest fixtures for Siteseal test suite."""

import base64
import itertools
import json
import logging
import logging.handlers
from collections.abc import Callable, Generator
from pathlib import Path

import httpx
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from siteseal.config import Settings
from siteseal.crypto import generate_rsa_key, private_key_to_pem, public_key_to_pem
from siteseal.keys import AccountKeyPair

API_URL = "https://acme.test"

# A DER-looking body that is neither JSON nor valid UTF-8
FAKE_DER = b"\x30\x82\x04\xac" + b"\xa5" * 1196


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """A 2048-bit RSA key shared across the session (4096 is too slow for tests)."""
    return generate_rsa_key(2048)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temporary directory, pointing at the fake ACME server."""
    return Settings(
        api_url=API_URL,
        certs_root=tmp_path / "live",
        challenges_root=tmp_path / "www",
        key_size=2048,
        poll_interval=0,
        poll_timeout=5,
    )


@pytest.fixture
def account_key_pair(settings: Settings, rsa_key: rsa.RSAPrivateKey) -> AccountKeyPair:
    """Account key pair already present on disk."""
    pair = AccountKeyPair(settings)
    pair.path.mkdir(parents=True)
    pair.private_path.write_text(private_key_to_pem(rsa_key))
    pair.public_path.write_text(public_key_to_pem(rsa_key))
    return pair


class NonceSource:
    """Hands out distinct replay nonces, like an ACME server does."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self.issued: list[str] = []

    def next(self) -> str:
        nonce = f"nonce-{next(self._counter)}"
        self.issued.append(nonce)
        return nonce

    def headers(self, **extra: str) -> dict[str, str]:
        return {"Replay-Nonce": self.next(), **extra}

    def response(
        self,
        status_code: int,
        json: object = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        all_headers = self.headers(**(headers or {}))
        if json is not None:
            return httpx.Response(status_code, json=json, headers=all_headers)
        return httpx.Response(status_code, content=content or b"", headers=all_headers)


@pytest.fixture
def nonces() -> NonceSource:
    return NonceSource()


def decode_jws(request: httpx.Request) -> tuple[dict, dict]:
    """Return the decoded protected header and payload of a signed request."""
    body = json.loads(request.content)

    def _decode(value: str) -> dict:
        return json.loads(base64.urlsafe_b64decode(value + "=" * (-len(value) % 4)))

    return _decode(body["protected"]), _decode(body["payload"])


@pytest.fixture
def jws() -> Callable[[httpx.Request], tuple[dict, dict]]:
    """Decoder for the JWS body of a captured request."""
    return decode_jws


@pytest.fixture
def api_url() -> str:
    return API_URL


@pytest.fixture
def fake_der() -> bytes:
    return FAKE_DER


class LogCapture:
    """Helper class to capture and inspect log records."""

    def __init__(self, handler: logging.handlers.MemoryHandler) -> None:
        self._handler = handler

    @property
    def records(self) -> list[logging.LogRecord]:
        """Get all captured log records."""
        return self._handler.buffer

    def get_records(
        self, level: int | None = None, name: str | None = None
    ) -> list[logging.LogRecord]:
        """Get log records filtered by level and/or logger name.

        Args:
            level: Filter by log level (e.g., logging.INFO).
            name: Filter by logger name prefix (e.g., "siteseal.manager").

        Returns:
            List of matching log records.
        """
        records = self.records
        if level is not None:
            records = [r for r in records if r.levelno == level]
        if name is not None:
            records = [r for r in records if r.name.startswith(name)]
        return records

    def get_messages(self, level: int | None = None, name: str | None = None) -> list[str]:
        """Get log messages filtered by level and/or logger name."""
        return [r.getMessage() for r in self.get_records(level, name)]

    def clear(self) -> None:
        """Clear all captured log records."""
        self._handler.buffer.clear()


@pytest.fixture
def log_capture() -> Generator[LogCapture]:
    """Capture logs from the siteseal library during a test.

    Usage:
        def test_something(log_capture):
            # do something that logs
            assert "Certificate issued" in log_capture.get_messages(logging.INFO)
    """
    handler = logging.handlers.MemoryHandler(capacity=1000)
    handler.setLevel(logging.DEBUG)

    siteseal_logger = logging.getLogger("siteseal")
    original_level = siteseal_logger.level
    siteseal_logger.setLevel(logging.DEBUG)
    siteseal_logger.addHandler(handler)

    try:
        yield LogCapture(handler)
    finally:
        siteseal_logger.removeHandler(handler)
        siteseal_logger.setLevel(original_level)
        handler.close()
