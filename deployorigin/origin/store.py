"""Origin files on disk.

The descriptor itself never touches the filesystem; this store is the thin
layer that reads an origin file into a descriptor and writes it back.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path

from deployorigin.keyfile import loads
from deployorigin.origin.descriptor import OriginDescriptor

logger = logging.getLogger(__name__)

_NEW_FILE_MODE = 0o644


class OriginStore:
    """Loads and saves a single origin file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> OriginDescriptor:
        """Read and parse the origin file.

        Raises:
            FileNotFoundError: if the file does not exist.
            KeyFileError: if the text is not a valid key file.
            OriginError: if the document is not a valid origin.
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Origin file not found: {self.path}")

        text = self.path.read_text(encoding="utf-8")
        origin = OriginDescriptor.parse(loads(text))
        logger.debug("Loaded %s from %s", origin, self.path)
        return origin

    def save(self, origin: OriginDescriptor) -> None:
        """Write the origin atomically: temp file in the same directory, then rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(origin.to_text())
            # mkstemp creates 0600; keep the mode of the file being replaced.
            if self.path.exists():
                os.chmod(tmp, stat.S_IMODE(self.path.stat().st_mode))
            else:
                os.chmod(tmp, _NEW_FILE_MODE)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("Saved %s to %s", origin, self.path)
