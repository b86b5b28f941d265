"""
Scoped temporary files for job staging

Each job owns exactly two staging files (input and output). A ScopedTempFile
is created on disk immediately and deleted at most once by release(); every
later release() is a no-op, so cleanup code on overlapping exit paths can
call it freely.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional, Set

from ..utils.helpers import ensure_directory, safe_unlink
from ..utils.logger import get_logger


logger = get_logger(__name__)


class ScopedTempFile:
    """
    A temporary file whose deletion is guaranteed by its owner

    Attributes:
        path: Location of the file on disk
        released: True once release() has run
    """

    def __init__(self, path: Path, registry: Optional[Set["ScopedTempFile"]] = None):
        self.path = path
        self.released = False
        self._registry = registry
        if registry is not None:
            registry.add(self)

    @classmethod
    def create(
        cls,
        suffix: str = "",
        directory: Optional[Path] = None,
        registry: Optional[Set["ScopedTempFile"]] = None
    ) -> "ScopedTempFile":
        """
        Create an empty temporary file

        Args:
            suffix: File name suffix, e.g. ".mp3"
            directory: Parent directory; system temp dir when None
            registry: Set that tracks live handles, for leak accounting

        Raises:
            OSError: If the directory or file cannot be created
        """
        if directory is not None:
            ensure_directory(directory)
        fd, name = tempfile.mkstemp(suffix=suffix, prefix="theme-", dir=str(directory) if directory else None)
        os.close(fd)
        return cls(Path(name), registry)

    def write_bytes(self, data: bytes) -> None:
        """Replace the file contents"""
        self.path.write_bytes(data)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def release(self) -> None:
        """Delete the file once; failures are logged, never raised"""
        if self.released:
            return
        self.released = True
        safe_unlink(self.path)
        if self._registry is not None:
            self._registry.discard(self)

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"ScopedTempFile({self.path}, {state})"
