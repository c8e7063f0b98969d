# Copyright (c) Syntropy Systems
"""Storage adapters."""
from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import threading
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from mutantgen.errors import StorageError

if TYPE_CHECKING:
    from mutantgen.config import MutantGenConfig


class FileSystemStorage:
    """UTF-8 files on the local filesystem.

    Relative paths resolve against base_path (the working directory by
    default). Writes go to a temporary file in the target directory and are
    moved into place with os.replace, so readers never see partial content.
    """

    base_path: Path
    logger: logging.Logger

    def __init__(
        self,
        base_path: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_path = base_path or Path.cwd()
        self.logger = logger or logging.getLogger(__name__)

    def _resolve(self, path: str) -> Path:
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.base_path / candidate

    def read(self, path: str) -> str:
        """Read a file as UTF-8 text."""
        full_path = self._resolve(path)
        try:
            content = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Failed to read file {path}: {e}"
            raise StorageError(msg, path=path) from e
        self.logger.debug("Read %s (%d chars)", full_path, len(content))
        return content

    def write(self, path: str, content: str) -> None:
        """Atomically replace a file's content."""
        full_path = self._resolve(path)
        self.ensure_directory(str(full_path.parent))
        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=full_path.parent,
                prefix=f".{full_path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                _ = tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, full_path)
        except OSError as e:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            msg = f"Failed to write file {path}: {e}"
            raise StorageError(msg, path=path) from e
        self.logger.debug(
            "Wrote %s (%d lines)", full_path, len(content.splitlines())
        )

    def exists(self, path: str) -> bool:
        """Check whether a file or directory exists."""
        return self._resolve(path).exists()

    def ensure_directory(self, path: str) -> None:
        """Create a directory and its parents if missing."""
        full_path = self._resolve(path)
        try:
            full_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Failed to create directory {path}: {e}"
            raise StorageError(msg, path=path) from e


class MemoryStorage:
    """In-process storage keyed by normalized POSIX path.

    Useful for dry runs and tests. Safe to share between threads.
    """

    files: dict[str, str]
    directories: set[str]
    _lock: threading.Lock

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = {}
        self.directories = set()
        self._lock = threading.Lock()
        for path, content in (files or {}).items():
            self.write(path, content)

    @staticmethod
    def _key(path: str) -> str:
        return str(PurePosixPath(path.replace("\\", "/")))

    def read(self, path: str) -> str:
        """Return stored content or raise StorageError."""
        with self._lock:
            try:
                return self.files[self._key(path)]
            except KeyError:
                msg = f"Failed to read file {path}: not found"
                raise StorageError(msg, path=path) from None

    def write(self, path: str, content: str) -> None:
        """Store content under path."""
        key = self._key(path)
        with self._lock:
            self.files[key] = content
            self.directories.update(str(p) for p in PurePosixPath(key).parents)

    def exists(self, path: str) -> bool:
        """Check whether a file or directory is known."""
        key = self._key(path)
        with self._lock:
            return key in self.files or key in self.directories

    def ensure_directory(self, path: str) -> None:
        """Record a directory and its parents."""
        key = PurePosixPath(self._key(path))
        with self._lock:
            self.directories.add(str(key))
            self.directories.update(str(p) for p in key.parents)


def create_filesystem_storage(
    config: MutantGenConfig,
    logger: logging.Logger,
) -> FileSystemStorage:
    """Registry factory for FileSystemStorage."""
    _ = config
    return FileSystemStorage(logger=logger)


def create_memory_storage(
    config: MutantGenConfig,
    logger: logging.Logger,
) -> MemoryStorage:
    """Registry factory for MemoryStorage."""
    _ = config, logger
    return MemoryStorage()
