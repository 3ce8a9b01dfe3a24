"""Args file shared between a collector and the binaries it runs.

The collector rewrites one temp file before every run; run_test reads it back
on the other side of the process boundary. Values are newline separated, so an
argument cannot itself contain a newline.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import IO, List, Optional, Sequence

from .constants import DEFAULT_ARGS_FILE_PREFIX
from .errors import ArgsFileError

logger = logging.getLogger(__name__)


class ArgsFile:
    """Reusable temp file carrying the logical argv of the next run."""

    def __init__(self, handle: IO[str], path: str):
        self._handle = handle
        self.path = path

    @classmethod
    def create(cls, prefix: str = DEFAULT_ARGS_FILE_PREFIX, tmp_dir: Optional[str] = None) -> "ArgsFile":
        """Allocate a new, empty args file."""
        fd, path = tempfile.mkstemp(prefix=prefix, dir=tmp_dir)
        handle = os.fdopen(fd, "w+", encoding="utf-8")
        logger.debug("Created args file %s", path)
        return cls(handle, path)

    @property
    def closed(self) -> bool:
        return self._handle.closed

    def write(self, args: Sequence[str]) -> None:
        """Replace the file contents with ``args`` joined by newlines."""
        content = "\n".join(args)
        try:
            self._handle.truncate(0)
            self._handle.seek(0)
            self._handle.write(content)
            self._handle.flush()
        except (OSError, ValueError) as exc:
            raise ArgsFileError(f"error writing args file {self.path}: {exc}") from exc

    def read(self) -> List[str]:
        return read_args_file(self.path)

    def close(self) -> None:
        self._handle.close()

    def remove(self) -> None:
        """Close and delete the file; OSError propagates to the caller."""
        if not self._handle.closed:
            self._handle.close()
        os.remove(self.path)


def parse_args_text(text: str) -> List[str]:
    """Split args file content into non-blank, whitespace-trimmed values."""
    return [line.strip() for line in text.split("\n") if line.strip()]


def read_args_file(path: str | Path) -> List[str]:
    """Read and parse an args file written by ``ArgsFile.write``."""
    return parse_args_text(Path(path).read_text(encoding="utf-8"))
