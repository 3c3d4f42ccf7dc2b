"""Error kinds raised by the store, the sources and the migration pipeline."""

from __future__ import annotations


class ContactsBenchError(RuntimeError):
    """Base error.

    ``partial_count`` is filled in by the operation that aborted, with the
    number of records it had processed before the failure.
    """

    def __init__(self, message: str, *, partial_count: int | None = None) -> None:
        super().__init__(message)
        self.partial_count = partial_count


class SourceEnumerationError(ContactsBenchError):
    """Raised when the native source fails mid-iteration."""


class StoreError(ContactsBenchError):
    """Base store error."""


class StoreOpenError(StoreError):
    """Raised when the store cannot be connected or its schema cannot be created."""


class StoreIOError(StoreError):
    """Raised when a read or write against an open store fails."""


class DuplicateKeyError(StoreError):
    """Raised when inserting a record whose id is already stored."""

    def __init__(self, record_id: str, *, partial_count: int | None = None) -> None:
        self.record_id = record_id
        super().__init__(f"Record id {record_id!r} already exists", partial_count=partial_count)
