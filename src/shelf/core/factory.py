"""Factory for building the CollectionService with all dependencies wired.

Every window (and the CLI) should call build_collection_service() so the
store, bus and save location are configured the same way everywhere.
"""

from pathlib import Path

from shelf.core.config import get_save_location
from shelf.core.service import CollectionService
from shelf.core.store import CollectionStore
from shelf.core.types import Scheduler
from shelf.storage.files import FileAdapter, PersistenceAdapter


def build_collection_service(
    save_location: Path | str | None = None,
    debounce_seconds: float | None = None,
    scheduler: Scheduler | None = None,
    adapter: PersistenceAdapter | None = None,
) -> CollectionService:
    """
    Build a fully configured CollectionService.

    Args:
        save_location: Fixed save location (defaults to SHELF_SAVE_LOCATION,
            re-read on every call)
        debounce_seconds: Debounce window (defaults to config)
        scheduler: Timer factory for debounced notifications
        adapter: Persistence adapter (defaults to FileAdapter)

    Returns:
        CollectionService owned by the caller; call cleanup() when done
    """
    if save_location is not None:
        fixed = Path(save_location).expanduser()

        def location_provider() -> Path:
            return fixed

    else:
        location_provider = get_save_location

    store = CollectionStore(adapter or FileAdapter())

    return CollectionService(
        store=store,
        location_provider=location_provider,
        debounce_seconds=debounce_seconds,
        scheduler=scheduler,
    )
