"""Collection service - query, mutation and subscription API.

Every mutation reloads the store from disk before changing anything
(load-fresh-before-mutate), so a long-lived cache in one window never
overwrites changes another window made since it last read. Conflicts
between windows resolve as last-writer-wins on the whole list.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, TypeVar
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from shelf.core.config import DEFAULT_COLLECTION_ID, get_save_location
from shelf.core.counts import note_id, note_id_set, sort_collections, with_counts
from shelf.core.errors import (
    NotFoundError,
    PersistenceReadError,
    ProtectedCollectionError,
    ValidationError,
)
from shelf.core.notify import Delivery, NotificationBus
from shelf.core.store import CollectionStore
from shelf.core.types import (
    Collection,
    CollectionCreateInput,
    CollectionsListener,
    CollectionUpdateInput,
    CollectionWithCount,
    Scheduler,
    as_utc,
    default_collection,
    utc_now,
)
from shelf.storage.files import Location

logger = logging.getLogger(__name__)

InputT = TypeVar("InputT", bound=BaseModel)


def _coerce_input(model: type[InputT], data: InputT | Mapping[str, Any]) -> InputT:
    """Validate raw input into an input model, translating pydantic errors."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'input'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(
            f"Invalid {model.__name__}: {messages}", messages
        ) from exc


class CollectionService:
    """Groups notes into named collections and keeps subscribers in sync.

    Lifecycle: construct, call operations, then ``cleanup()`` (or use the
    service as a context manager) when the owning window shuts down.
    """

    def __init__(
        self,
        store: CollectionStore,
        location_provider: Callable[[], Location] | None = None,
        bus: NotificationBus | None = None,
        debounce_seconds: float | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the service.

        Args:
            store: Collection store backed by a persistence adapter
            location_provider: Returns the save location; consulted on every call
            bus: Notification bus (built from debounce_seconds/scheduler if omitted)
            debounce_seconds: Debounce window for lifecycle notifications
            scheduler: Timer factory for the debounce window
            clock: Time source for timestamps (defaults to UTC now)
        """
        self.store = store
        self._location_provider = location_provider or get_save_location
        self._clock = clock or utc_now
        self.bus = bus or NotificationBus(
            self.get_collections_with_counts,
            debounce_seconds=debounce_seconds,
            scheduler=scheduler,
        )

    # Lifecycle

    def __enter__(self) -> "CollectionService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        """Cancel pending notifications and drop all subscribers."""
        self.bus.cleanup()

    @property
    def location(self) -> Location:
        """Current save location."""
        return self._location_provider()

    @property
    def last_error(self) -> PersistenceReadError | None:
        """Most recent read failure, for user-visible messaging."""
        return self.store.last_error

    # Queries

    def get_all_collections(self) -> list[Collection]:
        """Get all collections, default first, then by sort order."""
        return sort_collections(self._read())

    def get_collection(self, collection_id: str) -> Collection | None:
        """Get a collection by id."""
        return next((c for c in self._read() if c.id == collection_id), None)

    def get_collections_for_note(self, note_id: str) -> list[Collection]:
        """Get the user collections that contain a note."""
        return [
            c
            for c in self.get_all_collections()
            if not c.is_default and c.has_note(note_id)
        ]

    def get_collections_with_counts(
        self, current_notes: Iterable[Any]
    ) -> list[CollectionWithCount]:
        """Get all collections annotated with live note counts."""
        return with_counts(self._read(), current_notes)

    def get_notes_for_collection(
        self, collection_id: str, notes: Sequence[Any]
    ) -> list[Any]:
        """
        Filter notes down to the members of a collection.

        Args:
            collection_id: Collection to filter by
            notes: Current notes (ids, mappings or note objects)

        Returns:
            All notes for the default collection, members otherwise,
            empty for an unknown collection
        """
        collection = self.get_collection(collection_id)
        if collection is None:
            return []
        if collection.is_default:
            return list(notes)
        members = set(collection.note_ids)
        return [note for note in notes if note_id(note) in members]

    def is_protected(self, collection_id: str) -> bool:
        """Check whether a collection id refers to the default collection."""
        return collection_id == DEFAULT_COLLECTION_ID

    # Mutations

    def create(
        self,
        data: CollectionCreateInput | Mapping[str, Any],
        current_notes: Iterable[Any] | None = None,
    ) -> Collection:
        """
        Create a new collection.

        Args:
            data: Name, icon, color and optional description
            current_notes: Current note set for the notification

        Returns:
            The created collection

        Raises:
            ValidationError: If the name is empty or input is malformed.
            PersistenceReadError: If the fresh load fails.
            PersistenceWriteError: If saving fails.
        """
        values = _coerce_input(CollectionCreateInput, data)
        notes = self._snapshot(current_notes)
        location, collections = self._load_fresh()
        user_collections = [c for c in collections if not c.is_default]

        now = self._now()
        collection = Collection(
            id=str(uuid4()),
            name=values.name,
            description=values.description,
            icon=values.icon,
            color=values.color,
            note_ids=(),
            sort_order=max((c.sort_order for c in user_collections), default=0) + 1,
            created_at=now,
            updated_at=now,
        )

        self.store.save(location, [*user_collections, collection])
        logger.info(f"Created collection {collection.name!r} ({collection.id})")
        self.bus.notify(notes, immediate=True)
        return collection

    def update(
        self,
        collection_id: str,
        patch: CollectionUpdateInput | Mapping[str, Any],
        current_notes: Iterable[Any] | None = None,
    ) -> Collection | None:
        """
        Apply a patch to a collection.

        Returns:
            The updated collection, or None if it does not exist

        Raises:
            ProtectedCollectionError: If targeting the default collection.
            ValidationError: If the patch is malformed or blanks the name.
        """
        self._ensure_mutable(collection_id, "update")
        changes = _coerce_input(CollectionUpdateInput, patch).changes()
        notes = self._snapshot(current_notes)

        location, collections = self._load_fresh()
        target = self._find(collections, collection_id)
        if target is None:
            logger.debug(f"Update skipped, collection not found: {collection_id}")
            return None

        updated = target.model_copy(update={**changes, "updated_at": self._now()})
        self.store.save(location, self._replace(collections, updated))
        logger.info(f"Updated collection {updated.id}: {sorted(changes)}")
        self.bus.notify(notes, immediate=True)
        return updated

    def delete(
        self, collection_id: str, current_notes: Iterable[Any] | None = None
    ) -> bool:
        """
        Delete a collection; member notes are kept.

        Returns:
            True if deleted, False if it does not exist

        Raises:
            ProtectedCollectionError: If targeting the default collection.
        """
        self._ensure_mutable(collection_id, "delete")
        notes = self._snapshot(current_notes)

        location, collections = self._load_fresh()
        if self._find(collections, collection_id) is None:
            logger.debug(f"Delete skipped, collection not found: {collection_id}")
            return False

        self.store.save(location, [c for c in collections if c.id != collection_id])
        logger.info(f"Deleted collection {collection_id}")
        self.bus.notify(notes, immediate=True)
        return True

    def add_note_to_collection(
        self, collection_id: str, note_id: str, current_notes: Iterable[Any]
    ) -> Collection:
        """
        Add a note to a collection; adding an existing member is a no-op.

        Raises:
            ProtectedCollectionError: If targeting the default collection.
            NotFoundError: If the collection does not exist.
        """
        self._ensure_mutable(collection_id, "add notes to")
        notes = self._snapshot(current_notes)

        location, collections = self._load_fresh()
        target = self._require(collections, collection_id)
        if not target.has_note(note_id):
            target = target.model_copy(
                update={
                    "note_ids": (*target.note_ids, note_id),
                    "updated_at": self._now(),
                }
            )
            self.store.save(location, self._replace(collections, target))
            logger.info(f"Added note {note_id} to collection {collection_id}")

        self.bus.notify(notes, immediate=True)
        return target

    def remove_note_from_collection(
        self, collection_id: str, note_id: str, current_notes: Iterable[Any]
    ) -> Collection:
        """
        Remove a note from a collection; removing a non-member is a no-op.

        Raises:
            ProtectedCollectionError: If targeting the default collection.
            NotFoundError: If the collection does not exist.
        """
        self._ensure_mutable(collection_id, "remove notes from")
        notes = self._snapshot(current_notes)

        location, collections = self._load_fresh()
        target = self._require(collections, collection_id)
        if target.has_note(note_id):
            target = target.model_copy(
                update={
                    "note_ids": tuple(n for n in target.note_ids if n != note_id),
                    "updated_at": self._now(),
                }
            )
            self.store.save(location, self._replace(collections, target))
            logger.info(f"Removed note {note_id} from collection {collection_id}")

        self.bus.notify(notes, immediate=True)
        return target

    def reorder(
        self,
        collection_ids: Sequence[str],
        current_notes: Iterable[Any] | None = None,
    ) -> list[Collection]:
        """
        Reorder user collections.

        Listed collections take positions 1..n in the given order; unlisted
        collections follow in their previous order. Unknown ids and the
        default collection are ignored.

        Returns:
            All collections in their new display order
        """
        notes = self._snapshot(current_notes)
        location, collections = self._load_fresh()
        user_collections = sort_collections(c for c in collections if not c.is_default)
        by_id = {c.id: c for c in user_collections}

        ordered: list[Collection] = []
        for collection_id in dict.fromkeys(collection_ids):
            if collection_id in by_id:
                ordered.append(by_id.pop(collection_id))
            elif not self.is_protected(collection_id):
                logger.warning(f"Reorder ignoring unknown collection: {collection_id}")
        ordered.extend(c for c in user_collections if c.id in by_id)

        now = self._now()
        reordered = [
            c
            if c.sort_order == position
            else c.model_copy(update={"sort_order": position, "updated_at": now})
            for position, c in enumerate(ordered, start=1)
        ]
        self.store.save(location, reordered)
        logger.info(f"Reordered {len(reordered)} collections")
        self.bus.notify(notes, immediate=True)
        return self.get_all_collections()

    # Note lifecycle hooks

    def handle_note_created(self, note_id: str, current_notes: Iterable[Any]) -> None:
        """New notes start unassigned; only counts change, so debounce."""
        logger.debug(f"Handling note created: {note_id}")
        self.bus.notify(self._snapshot(current_notes))

    def handle_note_deleted(self, note_id: str, current_notes: Iterable[Any]) -> None:
        """
        Prune a deleted note from every collection and persist once.

        The debounced notification is scheduled even if saving fails.

        Raises:
            PersistenceReadError: If the fresh load fails.
            PersistenceWriteError: If saving fails.
        """
        logger.debug(f"Handling note deleted: {note_id}")
        notes = self._snapshot(current_notes)
        try:
            location, collections = self._load_fresh()
            now = self._now()
            pruned = [
                c.model_copy(
                    update={
                        "note_ids": tuple(n for n in c.note_ids if n != note_id),
                        "updated_at": now,
                    }
                )
                if not c.is_default and c.has_note(note_id)
                else c
                for c in collections
            ]
            changed = [c.id for c, p in zip(collections, pruned) if c is not p]
            if changed:
                self.store.save(location, pruned)
                logger.info(f"Removed note {note_id} from {len(changed)} collections")
        finally:
            self.bus.notify(notes)

    # Subscriptions

    def subscribe(self, listener: CollectionsListener) -> Callable[[], None]:
        """Register a listener; returns an unsubscribe function."""
        return self.bus.subscribe(listener)

    def notify(
        self, current_notes: Iterable[Any] | None = None, immediate: bool = False
    ) -> Delivery | None:
        """Signal subscribers that collections or notes changed."""
        return self.bus.notify(self._snapshot(current_notes), immediate=immediate)

    def refresh_counts(self, current_notes: Iterable[Any]) -> list[CollectionWithCount]:
        """Recompute counts and push them to subscribers immediately."""
        notes = self._snapshot(current_notes)
        counted = self.get_collections_with_counts(notes)
        self.bus.notify(notes, immediate=True)
        return counted

    # Multi-window helpers

    def invalidate(self) -> None:
        """Drop the cached list; the next query re-reads storage."""
        self.store.invalidate()

    def reload(self) -> list[Collection]:
        """Re-read collections from storage."""
        self.store.invalidate()
        return self.get_all_collections()

    def validate_active_collection(self, active_id: str | None) -> str:
        """Return active_id if it still exists, else the default collection id."""
        if active_id and self.get_collection(active_id) is not None:
            return active_id
        logger.info(
            f"Active collection {active_id!r} no longer exists, "
            f"falling back to {DEFAULT_COLLECTION_ID!r}"
        )
        return DEFAULT_COLLECTION_ID

    def initialize_with_session(
        self, saved_active_id: str | None
    ) -> tuple[list[Collection], str]:
        """
        Load collections at startup and restore the saved active collection.

        The active id itself is persisted by the settings layer; this only
        validates it against what is on disk.

        Returns:
            (collections in display order, active collection id)
        """
        self.store.invalidate()
        collections = self.get_all_collections()
        active_id = self.validate_active_collection(saved_active_id)
        logger.info(
            f"Initialized {len(collections)} collections, active: {active_id!r}"
        )
        return collections, active_id

    def health_check(self) -> dict[str, tuple[bool, str]]:
        """
        Check integrity of the collection data.

        Returns:
            Dict mapping check name to (healthy, message)
        """
        try:
            collections = self.store.load(self.location, force=True)
        except PersistenceReadError as exc:
            return {"storage": (False, exc.user_message)}

        error = self.store.last_error
        storage = (True, f"{len(collections) - 1} collections loaded")
        if error is not None:
            storage = (False, error.user_message)

        defaults = [c for c in collections if c.is_default]
        default_check = (
            (True, "present")
            if len(defaults) == 1
            else (False, f"expected 1 default collection, found {len(defaults)}")
        )

        ids = [c.id for c in collections]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        id_check = (
            (True, "unique")
            if not duplicates
            else (False, f"duplicate ids: {', '.join(duplicates)}")
        )

        return {"storage": storage, "default": default_check, "ids": id_check}

    # Internals

    def _now(self) -> datetime:
        return as_utc(self._clock())

    @staticmethod
    def _snapshot(current_notes: Iterable[Any] | None) -> tuple[Any, ...] | None:
        """Materialize the note set and check every note has an id."""
        if current_notes is None:
            return None
        notes = tuple(current_notes)
        note_id_set(notes)
        return notes

    def _read(self) -> list[Collection]:
        """Cache-or-load; read failures fall back to the default collection."""
        try:
            return self.store.load(self.location)
        except PersistenceReadError:
            logger.error("Falling back to default collection after read failure")
            return [default_collection(self._now())]

    def _load_fresh(self) -> tuple[Location, list[Collection]]:
        location = self.location
        return location, self.store.load(location, force=True)

    def _ensure_mutable(self, collection_id: str, action: str) -> None:
        if self.is_protected(collection_id):
            raise ProtectedCollectionError(
                f"Cannot {action} default collection {collection_id!r}"
            )

    @staticmethod
    def _find(collections: list[Collection], collection_id: str) -> Collection | None:
        return next((c for c in collections if c.id == collection_id), None)

    def _require(self, collections: list[Collection], collection_id: str) -> Collection:
        target = self._find(collections, collection_id)
        if target is None:
            raise NotFoundError(f"Collection not found: {collection_id}")
        return target

    @staticmethod
    def _replace(collections: list[Collection], updated: Collection) -> list[Collection]:
        return [updated if c.id == updated.id else c for c in collections]

    def __repr__(self) -> str:
        return f"CollectionService({self.store!r})"
