"""Disk storage for uploaded item images.

Writes are best effort and independent of the database transaction: a
saved file is not removed if the stock-in that referenced it fails
afterwards.
"""

import random
import time
from pathlib import Path


class FileStore:
    """Saves uploads under one directory and hands back a reference."""

    URL_PREFIX = "/uploads"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def save(self, filename: str, data: bytes) -> str:
        """Store ``data`` under a unique name keeping the original extension.

        Returns the reference string to persist, e.g.
        ``/uploads/1700000000000-123456789.png``.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        suffix = Path(filename or "").suffix
        unique = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        target = self.directory / f"{unique}{suffix}"
        target.write_bytes(data)
        return f"{self.URL_PREFIX}/{target.name}"

    def resolve(self, reference: str) -> Path:
        """Map a stored reference back to its file path."""
        return self.directory / Path(reference).name
