"""Runtime settings for siteseal."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LETSENCRYPT_V1_URL = "https://acme-v01.api.letsencrypt.org"
LICENSE_URL = "https://letsencrypt.org/documents/LE-SA-v1.0.1-July-27-2015.pdf"


class Settings(BaseSettings):
    """Paths, endpoints and timing used by the ACME core.

    Every field can also be set through a ``SITESEAL_``-prefixed environment
    variable, e.g. ``SITESEAL_CERTS_ROOT``. Explicit keyword arguments win
    over the environment.

    Args:
        api_url: Base URL of the ACME v1 API; relative endpoints resolve against it.
        agreement_url: Subscriber agreement accepted on registration.
        certs_root: Directory holding key pairs and certificates.
        challenges_root: Web root under which ``.well-known/acme-challenge`` is served.
        key_size: RSA key size in bits for account and domain keys.
        http_timeout: Timeout in seconds for a single HTTP call.
        poll_interval: Seconds to wait between polling attempts.
        poll_timeout: Upper bound in seconds for a polling loop.
        self_check: Fetch the published token over HTTP before submitting it.
        self_check_base_url: Base URL for the self check instead of ``http://{domain}``.
        verify: TLS verification flag or path to a CA bundle.
    """

    model_config = SettingsConfigDict(env_prefix="SITESEAL_", extra="ignore")

    api_url: str = LETSENCRYPT_V1_URL
    agreement_url: str = LICENSE_URL
    certs_root: Path = Path("letsencrypt/live")
    challenges_root: Path = Path(".")
    key_size: int = Field(default=4096, ge=1024)
    http_timeout: float = Field(default=10.0, gt=0)
    poll_interval: float = Field(default=1.0, ge=0)
    poll_timeout: float = Field(default=300.0, gt=0)
    self_check: bool = True
    self_check_base_url: str | None = None
    verify: bool | Path = True

    @property
    def challenges_dir(self) -> Path:
        """Directory the HTTP-01 token files are written to."""
        return self.challenges_root / ".well-known" / "acme-challenge"

    @property
    def httpx_verify(self) -> bool | str:
        """``verify`` in the form httpx accepts."""
        return self.verify if isinstance(self.verify, bool) else str(self.verify)

    @classmethod
    def from_env(cls, prefix: str = "SITESEAL_", **overrides: object) -> "Settings":
        """Build settings from ``{prefix}{FIELD_NAME}`` environment variables."""
        return cls(_env_prefix=prefix, **overrides)
