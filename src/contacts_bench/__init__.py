"""contacts-bench — migrate native contacts into an indexed store and time ordered reads."""

from contacts_bench.errors import (
    ContactsBenchError,
    DuplicateKeyError,
    SourceEnumerationError,
    StoreError,
    StoreIOError,
    StoreOpenError,
)
from contacts_bench.models import (
    ContactField,
    ContactRecord,
    DisplayName,
    MigrationReport,
    RawContact,
    ScanReport,
    SortHint,
)
from contacts_bench.normalize import normalize

__version__ = "0.1.0"

__all__ = [
    "ContactField",
    "ContactRecord",
    "ContactsBenchError",
    "DisplayName",
    "DuplicateKeyError",
    "MigrationReport",
    "RawContact",
    "ScanReport",
    "SortHint",
    "SourceEnumerationError",
    "StoreError",
    "StoreIOError",
    "StoreOpenError",
    "normalize",
]
