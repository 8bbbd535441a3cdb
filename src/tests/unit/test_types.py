"""Tests for shelf.core.types module."""

from datetime import UTC, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from shelf.core.types import (
    Collection,
    CollectionCreateInput,
    CollectionUpdateInput,
    CollectionWithCount,
    default_collection,
)

NOW = datetime(2024, 5, 1, 9, 30, 0, tzinfo=UTC)


def make_collection(**overrides) -> Collection:
    values = {
        "id": "c1",
        "name": "Work",
        "created_at": NOW,
        "updated_at": NOW,
    }
    values.update(overrides)
    return Collection(**values)


class TestCollection:
    """Tests for the Collection model."""

    def test_defaults(self):
        """Optional fields default to empty."""
        collection = make_collection()

        assert collection.note_ids == ()
        assert collection.sort_order == 0
        assert collection.is_default is False
        assert collection.icon is None

    def test_frozen(self):
        """Collections are immutable snapshots."""
        collection = make_collection()

        with pytest.raises(PydanticValidationError):
            collection.name = "Other"

    def test_note_ids_deduplicated(self):
        """Duplicate note ids collapse, keeping first-seen order."""
        collection = make_collection(note_ids=["n2", "n1", "n2"])

        assert collection.note_ids == ("n2", "n1")

    def test_has_note(self):
        """has_note checks membership."""
        collection = make_collection(note_ids=["n1"])

        assert collection.has_note("n1")
        assert not collection.has_note("n2")

    def test_validates_wire_names(self):
        """Persisted camelCase names are accepted."""
        collection = Collection.model_validate(
            {
                "id": "c1",
                "name": "Work",
                "noteIds": ["n1"],
                "sortOrder": 3,
                "createdAt": "2024-05-01T09:30:00",
                "updatedAt": "2024-05-01T09:30:00",
            }
        )

        assert collection.note_ids == ("n1",)
        assert collection.sort_order == 3
        assert collection.created_at == NOW

    def test_to_record_uses_wire_names(self):
        """Records use camelCase and omit isDefault."""
        record = make_collection(note_ids=["n1"], color="#059669").to_record()

        assert record["noteIds"] == ["n1"]
        assert record["sortOrder"] == 0
        assert record["createdAt"] == "2024-05-01T09:30:00Z"
        assert record["color"] == "#059669"
        assert "isDefault" not in record
        assert "is_default" not in record


class TestCollectionWithCount:
    """Tests for CollectionWithCount."""

    def test_from_collection(self):
        """Counts are attached to a copy of the collection."""
        collection = make_collection(note_ids=["n1", "n2"], sort_order=2)

        counted = CollectionWithCount.from_collection(collection, 1)

        assert counted.note_count == 1
        assert counted.id == "c1"
        assert counted.note_ids == ("n1", "n2")
        assert counted.sort_order == 2

    def test_negative_count_rejected(self):
        """Counts are never negative."""
        with pytest.raises(PydanticValidationError):
            CollectionWithCount.from_collection(make_collection(), -1)

    def test_record_omits_count(self):
        """The count is derived and never part of the persisted record."""
        counted = CollectionWithCount.from_collection(make_collection(), 4)

        record = counted.to_record()

        assert "noteCount" not in record
        assert "note_count" not in record
        assert record == make_collection().to_record()

    def test_to_collection(self):
        """Dropping the count gives back a plain collection."""
        collection = make_collection(note_ids=["n1"])

        plain = CollectionWithCount.from_collection(collection, 1).to_collection()

        assert type(plain) is Collection
        assert plain == collection


class TestTimestamps:
    """Tests for timestamp normalization."""

    def test_naive_treated_as_utc(self):
        """Naive timestamps are read as UTC."""
        collection = make_collection(created_at=datetime(2024, 5, 1, 9, 30, 0))

        assert collection.created_at == NOW
        assert collection.created_at.tzinfo is UTC

    def test_offset_converted_to_utc(self):
        """Timestamps with another offset are converted."""
        local = datetime(2024, 5, 1, 11, 30, 0, tzinfo=timezone(timedelta(hours=2)))

        collection = make_collection(updated_at=local)

        assert collection.updated_at == NOW
        assert collection.updated_at.tzinfo is UTC

    def test_z_suffix_round_trips(self):
        """Persisted Z timestamps load as UTC and are written back with Z."""
        collection = Collection.model_validate(
            {
                "id": "c1",
                "name": "Work",
                "createdAt": "2024-05-01T09:30:00Z",
                "updatedAt": "2024-05-01T09:30:00Z",
            }
        )

        assert collection.created_at == NOW
        assert collection.to_record()["createdAt"] == "2024-05-01T09:30:00Z"

    def test_default_collection_uses_utc_now(self):
        """Without an explicit time the default collection is stamped in UTC."""
        assert default_collection().created_at.tzinfo is UTC


class TestInputs:
    """Tests for create and update inputs."""

    def test_create_strips_name(self):
        """Names are trimmed."""
        assert CollectionCreateInput(name="  Work  ").name == "Work"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_create_rejects_blank_name(self, name):
        """Blank names are rejected."""
        with pytest.raises(PydanticValidationError):
            CollectionCreateInput(name=name)

    def test_create_rejects_unknown_fields(self):
        """Unknown fields such as noteIds cannot be smuggled in."""
        with pytest.raises(PydanticValidationError):
            CollectionCreateInput.model_validate({"name": "Work", "noteIds": ["n1"]})

    def test_update_changes_only_set_fields(self):
        """changes() returns only fields that were provided."""
        patch = CollectionUpdateInput(color="#2563eb")

        assert patch.changes() == {"color": "#2563eb"}

    def test_update_rejects_blank_name(self):
        """A patch cannot blank the name."""
        with pytest.raises(PydanticValidationError):
            CollectionUpdateInput(name=" ")


class TestDefaultCollection:
    """Tests for the synthetic default collection."""

    def test_shape(self):
        """Default collection is the reserved, empty All Notes."""
        collection = default_collection(NOW)

        assert collection.id == "all"
        assert collection.name == "All Notes"
        assert collection.is_default is True
        assert collection.note_ids == ()
        assert collection.sort_order == 0
        assert collection.created_at == NOW
