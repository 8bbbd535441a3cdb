"""Live note counts per collection.

Counts are always computed against the caller's current note set, so stale
membership (ids of notes that were deleted but not yet pruned) never
inflates a count.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from shelf.core.errors import ValidationError
from shelf.core.types import Collection, CollectionWithCount, NoteLike


def note_id(note: NoteLike | Mapping[str, Any] | str) -> str:
    """Extract a note id from an id string, a mapping, or a note object."""
    if isinstance(note, str):
        return note
    try:
        value = note["id"] if isinstance(note, Mapping) else note.id
    except (KeyError, AttributeError) as exc:
        raise ValidationError(
            f"Note has no id: {note!r}", "A note is missing its id."
        ) from exc
    if value is None:
        raise ValidationError(f"Note has no id: {note!r}", "A note is missing its id.")
    return str(value)


def note_id_set(notes: Iterable[Any]) -> frozenset[str]:
    """Collect the ids of a note set.

    Raises:
        ValidationError: If any note lacks an id.
    """
    return frozenset(note_id(note) for note in notes)


def count_notes(collection: Collection, note_ids: frozenset[str]) -> int:
    """Count the live members of a collection."""
    if collection.is_default:
        return len(note_ids)
    return sum(1 for member in collection.note_ids if member in note_ids)


def sort_collections(collections: Iterable[Collection]) -> list[Collection]:
    """Order collections for display: default first, then by sort order."""
    return sorted(collections, key=lambda c: (not c.is_default, c.sort_order))


def with_counts(
    collections: Iterable[Collection], notes: Iterable[Any]
) -> list[CollectionWithCount]:
    """
    Annotate collections with their live note counts.

    Args:
        collections: Collections including the synthetic default
        notes: Current note set (ids, mappings or note objects)

    Returns:
        Collections with counts, default first, then by sort order
    """
    ids = note_id_set(notes)
    return [
        CollectionWithCount.from_collection(c, count_notes(c, ids))
        for c in sort_collections(collections)
    ]
