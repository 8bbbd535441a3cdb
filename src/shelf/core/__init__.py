"""Shelf core library - collections of notes."""

from typing import TYPE_CHECKING

from shelf.core.errors import (
    CollectionError,
    ErrorKind,
    NotFoundError,
    PersistenceReadError,
    PersistenceWriteError,
    ProtectedCollectionError,
    ValidationError,
)
from shelf.core.types import (
    Collection,
    CollectionCreateInput,
    CollectionUpdateInput,
    CollectionWithCount,
    default_collection,
)

if TYPE_CHECKING:
    from shelf.core.factory import build_collection_service
    from shelf.core.notify import NotificationBus
    from shelf.core.service import CollectionService
    from shelf.core.store import CollectionStore

__all__ = [
    # Core classes
    "CollectionService",
    "CollectionStore",
    "NotificationBus",
    "build_collection_service",
    # Types
    "Collection",
    "CollectionCreateInput",
    "CollectionUpdateInput",
    "CollectionWithCount",
    "default_collection",
    # Errors
    "CollectionError",
    "ErrorKind",
    "NotFoundError",
    "PersistenceReadError",
    "PersistenceWriteError",
    "ProtectedCollectionError",
    "ValidationError",
]


def __getattr__(name: str):
    if name == "CollectionService":
        from shelf.core.service import CollectionService

        return CollectionService
    if name == "CollectionStore":
        from shelf.core.store import CollectionStore

        return CollectionStore
    if name == "NotificationBus":
        from shelf.core.notify import NotificationBus

        return NotificationBus
    if name == "build_collection_service":
        from shelf.core.factory import build_collection_service

        return build_collection_service
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
