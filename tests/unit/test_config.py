"""Unit tests for settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from siteseal.config import LETSENCRYPT_V1_URL, Settings


class TestDefaults:
    """Tests for default settings values."""

    def test_defaults(self, monkeypatch):
        """Defaults point at the Let's Encrypt v1 production API."""
        monkeypatch.delenv("SITESEAL_API_URL", raising=False)
        settings = Settings()

        assert settings.api_url == LETSENCRYPT_V1_URL
        assert settings.key_size == 4096
        assert settings.http_timeout == 10.0
        assert settings.poll_interval == 1.0
        assert settings.self_check is True
        assert settings.httpx_verify is True

    def test_challenges_dir(self, tmp_path):
        """Tokens live below .well-known/acme-challenge of the web root."""
        settings = Settings(challenges_root=tmp_path)
        assert settings.challenges_dir == tmp_path / ".well-known" / "acme-challenge"

    def test_rejects_tiny_keys(self):
        """Keys below 1024 bits are refused."""
        with pytest.raises(ValidationError):
            Settings(key_size=512)


class TestFromEnv:
    """Tests for environment-backed settings."""

    def test_reads_prefixed_variables(self, monkeypatch):
        """SITESEAL_* variables fill the matching fields."""
        monkeypatch.setenv("SITESEAL_CERTS_ROOT", "/srv/certs")
        monkeypatch.setenv("SITESEAL_POLL_TIMEOUT", "60")
        monkeypatch.setenv("SITESEAL_SELF_CHECK", "false")

        settings = Settings.from_env()

        assert settings.certs_root == Path("/srv/certs")
        assert settings.poll_timeout == 60.0
        assert settings.self_check is False

    def test_plain_constructor_reads_environment(self, monkeypatch):
        """The default prefix applies without going through from_env."""
        monkeypatch.setenv("SITESEAL_KEY_SIZE", "2048")
        assert Settings().key_size == 2048

    def test_verify_flag_and_bundle(self, monkeypatch):
        """verify accepts a boolean string or a CA bundle path."""
        monkeypatch.setenv("SITESEAL_VERIFY", "false")
        assert Settings.from_env().verify is False

        monkeypatch.setenv("SITESEAL_VERIFY", "/etc/ssl/ca.pem")
        settings = Settings.from_env()
        assert settings.verify == Path("/etc/ssl/ca.pem")
        assert settings.httpx_verify == "/etc/ssl/ca.pem"

    def test_overrides_win(self, monkeypatch):
        """Keyword arguments take precedence over the environment."""
        monkeypatch.setenv("SITESEAL_KEY_SIZE", "4096")
        assert Settings.from_env(key_size=2048).key_size == 2048

    def test_custom_prefix(self, monkeypatch):
        """Another prefix can be used for embedding applications."""
        monkeypatch.setenv("WPENC_API_URL", "https://acme-staging.api.letsencrypt.org")
        assert Settings.from_env(prefix="WPENC_").api_url == "https://acme-staging.api.letsencrypt.org"

    def test_invalid_value_rejected(self, monkeypatch):
        """Environment values are validated like keyword arguments."""
        monkeypatch.setenv("SITESEAL_POLL_TIMEOUT", "0")
        with pytest.raises(ValidationError):
            Settings.from_env()
