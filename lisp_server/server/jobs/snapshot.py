import logging
import os
import tempfile
from pathlib import Path

__all__ = ["SnapshotWriter"]


class SnapshotWriter:
    """Writes document text into transient compilation units"""

    directory: str | None
    prefix: str
    suffix: str

    def __init__(
        self,
        directory: str | None = None,
        prefix: str = "lisp-unit-",
        suffix: str = ".lisp",
    ):
        self.directory = directory
        self.prefix = prefix
        self.suffix = suffix

    def write(self, text: str) -> Path:
        fd, name = tempfile.mkstemp(
            suffix=self.suffix, prefix=self.prefix, dir=self.directory
        )

        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as file:
                file.write(text)
        except BaseException:
            self.discard(Path(name))
            raise

        return Path(name)

    def discard(self, path: Path):
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logging.warning(f"Failed to remove compilation unit {path}: {exc}")
