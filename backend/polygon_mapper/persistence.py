"""Durable blob stores for the serialized polygon collection."""

import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol


class PersistenceProvider(Protocol):
    """Key-value blob store holding the whole collection."""

    def read_all(self) -> Optional[bytes]:
        """Return the stored blob, or None if nothing was ever written."""
        ...

    def write_all(self, blob: bytes) -> None:
        """Replace the stored blob. Any exception means nothing was written."""
        ...


class MemoryPersistence:
    """In-process blob, the equivalent of browser local storage."""

    def __init__(self, blob: Optional[bytes] = None):
        self.blob = blob

    def read_all(self) -> Optional[bytes]:
        return self.blob

    def write_all(self, blob: bytes) -> None:
        self.blob = blob


class JsonFilePersistence:
    """Blob stored in a JSON file, replaced atomically on every write."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read_all(self) -> Optional[bytes]:
        if not self.path.exists():
            return None
        return self.path.read_bytes()

    def write_all(self, blob: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write next to the target so os.replace stays on one filesystem
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(blob)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
