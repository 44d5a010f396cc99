"""Filesystem capability used for keys, certificates and challenge files."""

import shutil
from abc import ABC, abstractmethod
from pathlib import Path


class Filesystem(ABC):
    """Abstract interface for the storage the core writes to.

    Implementations raise :class:`OSError` on failure; callers translate
    those into the matching :mod:`siteseal.exceptions` error.
    """

    @abstractmethod
    def exists(self, path: Path) -> bool:
        """Return True if a file or directory exists at ``path``."""
        ...

    @abstractmethod
    def is_dir(self, path: Path) -> bool:
        """Return True if ``path`` is a directory."""
        ...

    @abstractmethod
    def read(self, path: Path) -> bytes:
        """Read the full content of a file."""
        ...

    @abstractmethod
    def write(self, path: Path, data: bytes | str, mode: int | None = None) -> None:
        """Write ``data`` to ``path``, replacing any previous content.

        Args:
            path: Target file.
            data: Content; text is encoded as UTF-8.
            mode: Permission bits to apply after writing.
        """
        ...

    @abstractmethod
    def mkdir(self, path: Path, mode: int = 0o755) -> None:
        """Create ``path`` and any missing parents."""
        ...

    @abstractmethod
    def delete(self, path: Path) -> None:
        """Delete a single file. Missing files are ignored."""
        ...

    @abstractmethod
    def rmtree(self, path: Path) -> None:
        """Recursively delete a directory. Missing directories are ignored."""
        ...


class LocalFilesystem(Filesystem):
    """Filesystem backed by the local disk."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_dir(self, path: Path) -> bool:
        return Path(path).is_dir()

    def read(self, path: Path) -> bytes:
        return Path(path).read_bytes()

    def write(self, path: Path, data: bytes | str, mode: int | None = None) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        path = Path(path)
        path.write_bytes(data)
        if mode is not None:
            path.chmod(mode)

    def mkdir(self, path: Path, mode: int = 0o755) -> None:
        Path(path).mkdir(mode=mode, parents=True, exist_ok=True)

    def delete(self, path: Path) -> None:
        Path(path).unlink(missing_ok=True)

    def rmtree(self, path: Path) -> None:
        path = Path(path)
        if path.exists():
            shutil.rmtree(path)
