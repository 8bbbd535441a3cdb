"""Storage layer for Shelf."""

from shelf.storage.files import FileAdapter, PersistenceAdapter, WriteResult

__all__ = [
    "FileAdapter",
    "PersistenceAdapter",
    "WriteResult",
]
