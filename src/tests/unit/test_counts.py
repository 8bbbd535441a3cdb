"""Tests for shelf.core.counts module."""

from datetime import UTC, datetime

import pytest

from shelf.core.counts import (
    count_notes,
    note_id,
    note_id_set,
    sort_collections,
    with_counts,
)
from shelf.core.errors import ValidationError
from shelf.core.types import Collection, default_collection

NOW = datetime(2024, 5, 1, 9, 30, 0, tzinfo=UTC)


def make_collection(collection_id: str, sort_order: int = 1, note_ids=()) -> Collection:
    return Collection(
        id=collection_id,
        name=collection_id,
        sort_order=sort_order,
        note_ids=note_ids,
        created_at=NOW,
        updated_at=NOW,
    )


class TestNoteIds:
    """Tests for note id extraction."""

    def test_accepts_strings_mappings_and_objects(self, make_notes):
        """Ids can come from any note shape."""
        notes = ["n1", {"id": "n2"}, *make_notes("n3")]

        assert note_id_set(notes) == frozenset({"n1", "n2", "n3"})

    def test_mapping_without_id_raises(self):
        """Mappings must carry an id."""
        with pytest.raises(ValidationError):
            note_id({"title": "x"})

    def test_object_without_id_raises(self):
        """Objects must expose an id attribute."""
        with pytest.raises(ValidationError) as exc_info:
            note_id_set(["n1", object()])

        assert exc_info.value.user_message == "A note is missing its id."

    def test_none_id_raises(self):
        """A present but empty id is rejected."""
        with pytest.raises(ValidationError):
            note_id({"id": None})


class TestCountNotes:
    """Tests for count_notes."""

    def test_default_counts_every_note(self):
        """Default collection counts the whole note set."""
        assert count_notes(default_collection(NOW), frozenset({"a", "b"})) == 2

    def test_stale_members_not_counted(self):
        """Members missing from the note set are ignored."""
        collection = make_collection("c1", note_ids=["n1", "n2", "n9"])

        assert count_notes(collection, frozenset({"n1", "n2", "n3"})) == 2


class TestWithCounts:
    """Tests for with_counts."""

    def test_counts_and_order(self, make_notes):
        """Default first with total count, then by sort order."""
        collections = [
            make_collection("late", sort_order=5, note_ids=["n1"]),
            make_collection("early", sort_order=1, note_ids=["n1", "n2", "n9"]),
            default_collection(NOW),
        ]

        counted = with_counts(collections, make_notes("n1", "n2", "n3"))

        assert [(c.id, c.note_count) for c in counted] == [
            ("all", 3),
            ("early", 2),
            ("late", 1),
        ]

    def test_ties_keep_input_order(self):
        """Sorting is stable for equal sort orders."""
        collections = [make_collection("b"), make_collection("a")]

        assert [c.id for c in sort_collections(collections)] == ["b", "a"]

    def test_empty_notes(self):
        """With no notes every count is zero."""
        counted = with_counts(
            [default_collection(NOW), make_collection("c1", note_ids=["n1"])], []
        )

        assert [c.note_count for c in counted] == [0, 0]

    def test_inputs_untouched(self):
        """Input list is not reordered."""
        collections = [make_collection("b", sort_order=2), make_collection("a")]

        with_counts(collections, ["n1"])

        assert [c.id for c in collections] == ["b", "a"]
