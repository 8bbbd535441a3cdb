"""Cached, file-backed store for the canonical collection list."""

import json
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from shelf.core.config import DEFAULT_COLLECTION_ID
from shelf.core.errors import PersistenceReadError, PersistenceWriteError
from shelf.core.types import (
    Collection,
    CollectionWithCount,
    default_collection,
    utc_now,
)
from shelf.storage.files import Location, PersistenceAdapter, WriteResult

logger = logging.getLogger(__name__)


def _sanitize_record(item: dict[str, Any], now: datetime) -> dict[str, Any]:
    """Fill in missing or mistyped fields of a persisted record."""
    note_ids = item.get("noteIds")
    sort_order = item.get("sortOrder")
    return {
        **item,
        "id": item.get("id") or str(uuid4()),
        "name": item.get("name") or "Untitled Collection",
        "createdAt": item.get("createdAt") or now,
        "updatedAt": item.get("updatedAt") or now,
        "noteIds": (
            [n for n in note_ids if isinstance(n, str)]
            if isinstance(note_ids, list)
            else []
        ),
        "sortOrder": (
            sort_order
            if isinstance(sort_order, int) and not isinstance(sort_order, bool)
            else 0
        ),
    }


class CollectionStore:
    """Single source of truth for the persisted collection list.

    Holds an in-memory cache keyed by save location. Writes go through the
    persistence adapter; the cache only advances after a successful write.
    The synthetic default collection is added on every load and never saved.
    """

    def __init__(
        self,
        adapter: PersistenceAdapter,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the store.

        Args:
            adapter: Persistence adapter that reads/writes the serialized blob
            clock: Time source for synthesized records (defaults to UTC now)
        """
        self.adapter = adapter
        self._clock = clock or utc_now
        self._cache: tuple[Collection, ...] | None = None
        self._cache_location: str | None = None
        self._cache_lock = Lock()
        self._last_error: PersistenceReadError | None = None

    @property
    def last_error(self) -> PersistenceReadError | None:
        """Most recent read failure, cleared by the next clean load."""
        return self._last_error

    @property
    def is_cached(self) -> bool:
        """Check whether a cached list is present."""
        return self._cache is not None

    def load(self, location: Location, force: bool = False) -> list[Collection]:
        """
        Return all collections, default first, reading through on a miss.

        Args:
            location: Save location directory
            force: Re-read from the adapter even if a cache exists

        Returns:
            Snapshot list of collections

        Raises:
            PersistenceReadError: If the adapter read fails.
        """
        key = self._location_key(location)
        with self._cache_lock:
            if not force and self._cache is not None and self._cache_location == key:
                logger.debug("Returning cached collections")
                return list(self._cache)

            try:
                blob = self.adapter.read(location)
            except Exception as exc:
                error = PersistenceReadError(
                    f"Failed to read collections from {location}: {exc}"
                )
                self._last_error = error
                logger.error(str(error))
                raise error from exc

            collections = self._decode(blob, location)
            self._cache = (default_collection(self._clock()), *collections)
            self._cache_location = key
            return list(self._cache)

    def save(self, location: Location, collections: Iterable[Collection]) -> WriteResult:
        """
        Persist the given collections, excluding the default collection.

        Args:
            location: Save location directory
            collections: Full list of collections to write

        Returns:
            WriteResult with the resolved file path

        Raises:
            PersistenceWriteError: If no location is set or the write fails.
                The cache is left unchanged.
        """
        to_save = tuple(
            c.to_collection() if isinstance(c, CollectionWithCount) else c
            for c in collections
            if not c.is_default and c.id != DEFAULT_COLLECTION_ID
        )
        if location is None or not str(location).strip():
            raise PersistenceWriteError(
                "No save location configured",
                "Choose a save location in settings before editing collections.",
            )

        blob = json.dumps([c.to_record() for c in to_save], indent=2)
        with self._cache_lock:
            try:
                result = self.adapter.write(blob, location)
            except Exception as exc:
                logger.error(f"Failed to save collections to {location}: {exc}")
                raise PersistenceWriteError(
                    f"Failed to save collections to {location}: {exc}"
                ) from exc

            self._cache = (default_collection(self._clock()), *to_save)
            self._cache_location = self._location_key(location)

        logger.info(f"Saved {len(to_save)} collections to {result.resolved_path}")
        return result

    def invalidate(self) -> None:
        """Drop the cache so the next load re-reads the adapter."""
        with self._cache_lock:
            self._cache = None
            self._cache_location = None

    def _decode(self, blob: str | None, location: Location) -> list[Collection]:
        """Decode a blob into user collections; malformed data yields []."""
        if blob is None:
            logger.debug("No collections saved yet")
            self._last_error = None
            return []

        try:
            data = json.loads(blob)
        except json.JSONDecodeError as exc:
            return self._recover(blob, location, f"invalid JSON: {exc}")

        if not isinstance(data, list):
            return self._recover(
                blob, location, f"expected a list, got {type(data).__name__}"
            )

        now = self._clock()
        collections: list[Collection] = []
        seen: set[str] = set()
        skipped = 0
        for item in data:
            if not isinstance(item, dict):
                skipped += 1
                continue
            if item.get("isDefault") or item.get("id") == DEFAULT_COLLECTION_ID:
                logger.warning("Ignoring persisted default collection record")
                continue
            try:
                collection = Collection.model_validate(_sanitize_record(item, now))
            except PydanticValidationError as exc:
                logger.warning(f"Skipping invalid collection record: {exc}")
                skipped += 1
                continue
            if collection.id in seen:
                logger.warning(f"Skipping duplicate collection id: {collection.id}")
                skipped += 1
                continue
            seen.add(collection.id)
            collections.append(collection)

        if skipped:
            logger.warning(f"Skipped {skipped} corrupted collection records")
        logger.info(f"Loaded {len(collections)} collections")
        self._last_error = None
        return collections

    def _recover(self, blob: str, location: Location, reason: str) -> list[Collection]:
        """Back up an unreadable blob and fall back to an empty list."""
        backup_path: Path | None = None
        try:
            backup_path = self.adapter.backup(blob, location)
        except Exception:
            logger.error("Failed to back up corrupted collections file", exc_info=True)

        self._last_error = PersistenceReadError(
            f"Collections data at {location} is malformed ({reason}); "
            f"backup: {backup_path}",
            corrupted=True,
        )
        logger.error(str(self._last_error))
        return []

    @staticmethod
    def _location_key(location: Location) -> str | None:
        if location is None:
            return None
        return str(Path(location).expanduser())

    def __repr__(self) -> str:
        return f"CollectionStore({self.adapter!r})"
