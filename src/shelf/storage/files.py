"""File-backed persistence adapter for the collections blob."""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from shelf.core.config import COLLECTIONS_FILENAME

logger = logging.getLogger(__name__)

Location = Path | str | None


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a successful blob write."""

    success: bool
    resolved_path: Path


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Reads and writes a single serialized snapshot of all collections."""

    def read(self, location: Location) -> str | None:
        """Return the stored blob, or None when nothing was saved yet."""
        ...

    def write(self, blob: str, location: Location) -> WriteResult:
        """Replace the stored blob; raise on failure."""
        ...

    def backup(self, blob: str, location: Location) -> Path | None:
        """Preserve an unreadable blob before it gets overwritten."""
        ...


def _atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp.{os.getpid()}")
    try:
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


class FileAdapter:
    """Stores the blob as ``collections.json`` inside a save location."""

    def __init__(self, filename: str = COLLECTIONS_FILENAME):
        self.filename = filename

    def resolve(self, location: Location) -> Path | None:
        """Resolve the concrete file path for a save location."""
        if location is None or not str(location).strip():
            return None
        return Path(location).expanduser() / self.filename

    def read(self, location: Location) -> str | None:
        path = self.resolve(location)
        if path is None:
            logger.debug("No save location configured, nothing to read")
            return None
        if not path.exists():
            logger.debug(f"Collections file not found: {path}")
            return None
        return path.read_text(encoding="utf-8")

    def write(self, blob: str, location: Location) -> WriteResult:
        path = self.resolve(location)
        if path is None:
            raise ValueError("Save location is required")
        _atomic_write_text(path, blob)
        logger.debug(f"Collections written to {path}")
        return WriteResult(success=True, resolved_path=path)

    def backup(self, blob: str, location: Location) -> Path | None:
        path = self.resolve(location)
        if path is None:
            return None
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt-{stamp}{path.suffix}")
        _atomic_write_text(backup_path, blob)
        logger.warning(f"Backed up unreadable collections file to {backup_path}")
        return backup_path

    def __repr__(self) -> str:
        return f"FileAdapter({self.filename!r})"
