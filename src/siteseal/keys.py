"""RSA key pairs persisted as PEM files."""

from pathlib import Path

from cryptography.hazmat.primitives.asymmetric import rsa

from siteseal._logging import Timer, get_logger
from siteseal.config import Settings
from siteseal.crypto import (
    generate_rsa_key,
    load_private_key_pem,
    private_key_to_pem,
    public_key_to_pem,
)
from siteseal.exceptions import (
    DirectoryCreateError,
    KeyDetailsError,
    KeyExportError,
    KeyGenerationError,
    PrivateKeyInvalidError,
    PrivateKeyMissingError,
    PrivateKeyWriteError,
    PublicKeyWriteError,
)
from siteseal.filesystem import Filesystem, LocalFilesystem
from siteseal.models import KeyDetails

logger = get_logger(__name__)

ACCOUNT_SUB_PATH = "_account"


class KeyPair:
    """A private/public RSA key pair stored under ``certs_root/sub_path``.

    Once generated a key pair is never modified; ``generate()`` replaces
    both files outright. The parsed private key and its details are cached
    for the lifetime of the instance.

    Args:
        sub_path: Directory below ``settings.certs_root``.
        settings: Runtime settings.
        filesystem: Storage backend, local disk by default.
    """

    PUBLIC_NAME = "public.pem"
    PRIVATE_NAME = "private.pem"

    def __init__(
        self,
        sub_path: str,
        settings: Settings,
        filesystem: Filesystem | None = None,
    ):
        self.settings = settings
        self.fs = filesystem or LocalFilesystem()
        self.path = Path(settings.certs_root) / sub_path.strip("/")
        self._private_key: rsa.RSAPrivateKey | None = None
        self._details: KeyDetails | None = None

    @property
    def private_path(self) -> Path:
        return self.path / self.PRIVATE_NAME

    @property
    def public_path(self) -> Path:
        return self.path / self.PUBLIC_NAME

    def exists(self) -> bool:
        """Return True if both the private and the public PEM file exist."""
        return self.fs.exists(self.private_path) and self.fs.exists(self.public_path)

    def generate(self) -> None:
        """Generate a new key pair and write it to disk.

        Any existing files are overwritten.

        Raises:
            KeyGenerationError: If RSA generation fails.
            KeyExportError: If the key cannot be serialised.
            DirectoryCreateError: If the key directory cannot be created.
            PrivateKeyWriteError: If the private key cannot be written.
            PublicKeyWriteError: If the public key cannot be written.
        """
        with Timer() as t:
            try:
                key = generate_rsa_key(self.settings.key_size)
            except (ValueError, TypeError) as e:
                raise KeyGenerationError(f"Could not generate private key. Original error message: {e}") from e

        try:
            private_pem = private_key_to_pem(key)
            public_pem = public_key_to_pem(key)
        except (ValueError, TypeError) as e:
            raise KeyExportError(f"Could not export private key. Original error message: {e}") from e

        if not self.fs.is_dir(self.path):
            try:
                self.fs.mkdir(self.path, 0o700)
            except OSError as e:
                raise DirectoryCreateError(
                    f"Could not create directory {self.path} for private key.",
                    path=str(self.path),
                ) from e

        try:
            self.fs.write(self.private_path, private_pem, mode=0o600)
        except OSError as e:
            raise PrivateKeyWriteError(
                f"Could not write private key into file {self.private_path}.",
                path=str(self.private_path),
            ) from e

        try:
            self.fs.write(self.public_path, public_pem, mode=0o644)
        except OSError as e:
            raise PublicKeyWriteError(
                f"Could not write public key into file {self.public_path}.",
                path=str(self.public_path),
            ) from e

        self._private_key = key
        self._details = None

        logger.info(
            "Key pair generated",
            extra={"path": str(self.path), "key_size": self.settings.key_size, "elapsed_ms": t.elapsed_ms},
        )

    def read_private(self, force_refresh: bool = False) -> rsa.RSAPrivateKey:
        """Load the private key from disk, caching the parsed key.

        Raises:
            PrivateKeyMissingError: If the private key file does not exist.
            PrivateKeyInvalidError: If the file cannot be parsed as an RSA key.
        """
        if self._private_key is None or force_refresh:
            if not self.fs.exists(self.private_path):
                raise PrivateKeyMissingError("Missing private key.", data={"path": str(self.private_path)})
            try:
                pem = self.fs.read(self.private_path)
                self._private_key = load_private_key_pem(pem)
            except (OSError, ValueError) as e:
                raise PrivateKeyInvalidError(f"Invalid private key. Original error message: {e}") from e
            self._details = None
        return self._private_key

    def get_private_details(self, force_refresh: bool = False) -> KeyDetails:
        """Return the modulus, exponent and size of the private key.

        Raises:
            KeyDetailsError: If the key numbers cannot be retrieved.
        """
        if self._details is None or force_refresh:
            key = self.read_private()
            try:
                numbers = key.public_key().public_numbers()
                self._details = KeyDetails(
                    bits=key.key_size,
                    modulus=numbers.n.to_bytes((key.key_size + 7) // 8, byteorder="big"),
                    exponent=numbers.e.to_bytes((numbers.e.bit_length() + 7) // 8, byteorder="big"),
                    public_pem=public_key_to_pem(key),
                )
            except (AttributeError, ValueError, OverflowError) as e:
                raise KeyDetailsError(
                    f"Could not retrieve details from private key. Original error message: {e}"
                ) from e
        return self._details

    def clear_cache(self) -> None:
        """Forget the parsed key so the next read goes to disk."""
        self._private_key = None
        self._details = None

    def ensure(self) -> rsa.RSAPrivateKey:
        """Return the stored private key, generating a new pair if needed.

        A missing or unreadable key is replaced transparently.
        """
        if not self.exists():
            self.generate()
            return self.read_private()
        try:
            return self.read_private()
        except PrivateKeyInvalidError:
            logger.warning("Stored private key is invalid, regenerating", extra={"path": str(self.path)})
            self.generate()
            return self.read_private(force_refresh=True)


class AccountKeyPair(KeyPair):
    """The single key pair identifying this installation's ACME account."""

    def __init__(self, settings: Settings, filesystem: Filesystem | None = None):
        super().__init__(ACCOUNT_SUB_PATH, settings, filesystem)


class DomainKeyPair(KeyPair):
    """The key pair a domain's certificate is issued for."""

    def __init__(self, domain: str, settings: Settings, filesystem: Filesystem | None = None):
        self.domain = domain
        super().__init__(domain, settings, filesystem)


class KeyPairCache:
    """Mapping from root domain to its live :class:`DomainKeyPair`."""

    def __init__(self, settings: Settings, filesystem: Filesystem | None = None):
        self.settings = settings
        self.fs = filesystem or LocalFilesystem()
        self._pairs: dict[str, DomainKeyPair] = {}

    def get(self, domain: str) -> DomainKeyPair:
        if domain not in self._pairs:
            self._pairs[domain] = DomainKeyPair(domain, self.settings, self.fs)
        return self._pairs[domain]

    def clear(self) -> None:
        self._pairs.clear()

    def __contains__(self, domain: object) -> bool:
        return domain in self._pairs

    def __len__(self) -> int:
        return len(self._pairs)
