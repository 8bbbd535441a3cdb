"""Error taxonomy for the collection service.

Every error carries an internal ``kind`` for logging and a short
``user_message`` that a UI can show as-is. Adapter exceptions are chained
into one of these kinds and never escape the core unwrapped.
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Kinds of collection service failures."""

    PERSISTENCE_READ = "persistence_read"
    PERSISTENCE_WRITE = "persistence_write"
    PROTECTED = "protected"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"


class CollectionError(Exception):
    """Base error for collection service failures."""

    kind: ErrorKind
    default_user_message = (
        "An unexpected error occurred. Please try again or restart the application."
    )

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or self.default_user_message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={str(self)!r})"


class PersistenceReadError(CollectionError):
    """Raised when the collections blob cannot be read or decoded."""

    kind = ErrorKind.PERSISTENCE_READ
    default_user_message = (
        "Your collections could not be loaded. Check that the save location "
        "is readable."
    )

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        corrupted: bool = False,
    ):
        if corrupted and user_message is None:
            user_message = (
                "Collections data is corrupted. A backup was created and "
                "collections were reset."
            )
        super().__init__(message, user_message)
        self.corrupted = corrupted


class PersistenceWriteError(CollectionError):
    """Raised when the collections blob cannot be written."""

    kind = ErrorKind.PERSISTENCE_WRITE
    default_user_message = (
        "Your collections could not be saved. Check disk space and permissions, "
        "then try again."
    )


class ProtectedCollectionError(CollectionError):
    """Raised on attempts to mutate or delete the default collection."""

    kind = ErrorKind.PROTECTED
    default_user_message = "The All Notes collection cannot be changed."


class ValidationError(CollectionError):
    """Raised when input violates the mutation contract."""

    kind = ErrorKind.VALIDATION
    default_user_message = "Please check the collection details and try again."


class NotFoundError(CollectionError):
    """Raised when a membership change targets a missing collection."""

    kind = ErrorKind.NOT_FOUND
    default_user_message = "That collection no longer exists."
