"""
Filename-keyed blob store for quotation PDFs.

The backing directory may be wiped between process restarts (ephemeral
disks on hosted platforms), so callers must treat every artifact as
optional. The store does no locking of its own; concurrency discipline
lives in the regeneration service.

Writes are atomic from a reader's point of view: bytes go to a temporary
file in the same directory and are moved into place with os.replace().
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from werkzeug.utils import secure_filename

from .exceptions import ArtifactNotFoundError, PersistFailureError
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)


class ArtifactStore:
    """
    Directory-backed artifact store.

    Attributes:
        root: Directory holding the artifacts
    """

    def __init__(self, root: str | Path):
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info(f"ArtifactStore initialized at {self._root}")

    @property
    def root(self) -> Path:
        """Directory holding the artifacts."""
        return self._root

    @staticmethod
    def is_valid_name(name: str) -> bool:
        """True if name is a plain, safe basename."""
        return bool(name) and secure_filename(name) == name

    def path_for(self, name: str) -> Path:
        """Absolute path for an artifact name (name must be valid)."""
        return self._root / name

    def exists(self, name: str) -> bool:
        if not self.is_valid_name(name):
            return False
        return self.path_for(name).is_file()

    def read(self, name: str) -> bytes:
        """
        Read an artifact.

        Raises:
            ArtifactNotFoundError: If the name is invalid or the file is gone
        """
        if not self.is_valid_name(name):
            raise ArtifactNotFoundError(name, message="Invalid artifact name")

        try:
            return self.path_for(name).read_bytes()
        except FileNotFoundError:
            raise ArtifactNotFoundError(name)

    def write(self, name: str, content: bytes, exclusive: bool = False) -> Path:
        """
        Atomically write an artifact.

        Args:
            name: Artifact name
            content: Bytes to store
            exclusive: Fail instead of replacing an existing artifact

        Returns:
            Path of the stored artifact

        Raises:
            FileExistsError: exclusive is set and the name is taken
            PersistFailureError: If the name is invalid or the write fails
        """
        if not self.is_valid_name(name):
            raise PersistFailureError(name, "Invalid artifact name")

        target = self.path_for(name)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self._root)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            if exclusive:
                # link() refuses an existing target; replace() would overwrite it
                os.link(tmp_path, target)
                os.unlink(tmp_path)
            else:
                os.replace(tmp_path, target)
        except FileExistsError:
            os.unlink(tmp_path)
            raise
        except OSError as e:
            logger.error(f"Failed to write artifact {name}: {e}")
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise PersistFailureError(name, str(e))

        logger.debug(f"Stored artifact {name} ({len(content)} bytes)")
        return target
