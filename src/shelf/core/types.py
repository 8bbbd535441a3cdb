"""Shared types and data structures for Shelf."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shelf.core.config import DEFAULT_COLLECTION_ID

__all__ = [
    "Collection",
    "CollectionCreateInput",
    "CollectionUpdateInput",
    "CollectionWithCount",
    "CollectionsListener",
    "NoteLike",
    "Scheduler",
    "TimerHandle",
    "as_utc",
    "default_collection",
    "utc_now",
]


@runtime_checkable
class NoteLike(Protocol):
    """Anything the note store hands us that carries a note id."""

    @property
    def id(self) -> str: ...


class TimerHandle(Protocol):
    """A pending single-shot timer that can be cancelled."""

    def cancel(self) -> None:
        pass


class Scheduler(Protocol):
    """Arms a single-shot timer that runs ``callback`` after ``delay`` seconds."""

    def __call__(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        pass


class Collection(BaseModel):
    """A named grouping of notes.

    Frozen: consumers receive snapshots, mutations produce copies.
    Field aliases are the persisted wire names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    name: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    is_default: bool = Field(default=False, alias="isDefault")
    note_ids: tuple[str, ...] = Field(default=(), alias="noteIds")
    sort_order: int = Field(default=0, alias="sortOrder")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @field_validator("note_ids")
    @classmethod
    def _dedupe_note_ids(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(dict.fromkeys(value))

    @field_validator("created_at", "updated_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def has_note(self, note_id: str) -> bool:
        """Check membership of a note."""
        return note_id in self.note_ids

    def to_record(self) -> dict[str, Any]:
        """Convert to the persisted record shape."""
        return self.model_dump(mode="json", by_alias=True, exclude={"is_default"})


class CollectionWithCount(Collection):
    """Collection snapshot annotated with its live note count."""

    note_count: int = Field(default=0, ge=0, alias="noteCount")

    @classmethod
    def from_collection(
        cls, collection: Collection, note_count: int
    ) -> CollectionWithCount:
        """Annotate a collection with a count."""
        return cls.model_validate(
            {**collection.model_dump(), "note_count": note_count}
        )

    def to_collection(self) -> Collection:
        """Drop the derived count."""
        return Collection.model_validate(self.model_dump(exclude={"note_count"}))

    def to_record(self) -> dict[str, Any]:
        """Convert to the persisted record shape; the count is never stored."""
        return self.to_collection().to_record()


def _require_name(value: str | None) -> str:
    if value is None or not value.strip():
        raise ValueError("Collection name cannot be empty")
    return value.strip()


class CollectionCreateInput(BaseModel):
    """Fields accepted when creating a collection."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _require_name(value)


class CollectionUpdateInput(BaseModel):
    """Patch for an existing collection; only fields that are set apply."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    description: str | None = None
    icon: str | None = None
    color: str | None = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str | None) -> str:
        return _require_name(value)

    def changes(self) -> dict[str, Any]:
        """Return only the explicitly provided fields."""
        return self.model_dump(exclude_unset=True)


CollectionsListener = Callable[[list[CollectionWithCount]], None]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize a timestamp to aware UTC; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def default_collection(now: datetime | None = None) -> Collection:
    """Build the synthetic "All Notes" collection."""
    timestamp = now or utc_now()
    return Collection(
        id=DEFAULT_COLLECTION_ID,
        name="All Notes",
        description="All your notes in one place",
        is_default=True,
        note_ids=(),
        sort_order=0,
        created_at=timestamp,
        updated_at=timestamp,
    )
