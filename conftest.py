"""Root conftest — shared doubles and PostgreSQL fixtures for the test suite."""

from __future__ import annotations

import shutil
import uuid
from collections.abc import AsyncIterator, Callable, Iterator
from typing import TYPE_CHECKING

import pytest

from contacts_bench.errors import DuplicateKeyError, StoreIOError
from contacts_bench.models import ContactRecord

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

    from contacts_bench.db import Database

docker_available = shutil.which("docker") is not None


class InMemoryContactStore:
    """Dict-backed store double with the same ordering and error contract."""

    def __init__(self) -> None:
        self.records: dict[str, ContactRecord] = {}
        self.insert_calls: list[str] = []
        self.fail_insert_at: int | None = None
        self.fail_scan_after: int | None = None
        self.in_flight = 0
        self.max_in_flight = 0
        self.open_scans = 0
        self.closed = False

    async def insert(self, record: ContactRecord) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            self.insert_calls.append(record.id)
            if self.fail_insert_at is not None and len(self.insert_calls) > self.fail_insert_at:
                raise StoreIOError(f"simulated write failure for {record.id}")
            if record.id in self.records:
                raise DuplicateKeyError(record.id)
            self.records[record.id] = record.model_copy(deep=True)
        finally:
            self.in_flight -= 1

    async def get(self, record_id: str) -> ContactRecord | None:
        return self.records.get(record_id)

    async def count(self) -> int:
        return len(self.records)

    async def clear(self) -> int:
        removed = len(self.records)
        self.records.clear()
        return removed

    async def scan_ordered(self) -> AsyncIterator[ContactRecord]:
        ordered = sorted(
            self.records.values(),
            key=lambda record: (record.order_key, record.id),
        )
        self.open_scans += 1
        try:
            for position, record in enumerate(ordered):
                if self.fail_scan_after is not None and position >= self.fail_scan_after:
                    raise StoreIOError("simulated cursor failure")
                yield record
        finally:
            self.open_scans -= 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def memory_store() -> InMemoryContactStore:
    """Provide an empty in-memory store double."""
    return InMemoryContactStore()


def _unique_test_db_name() -> str:
    return f"test_{uuid.uuid4().hex[:12]}"


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Shared Postgres testcontainer for all DB-backed tests in this pytest session.

    Each ``database_factory`` call names a fresh database, so rows and schemas
    never leak between tests.
    """
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16") as pg:
        yield pg


@pytest.fixture
def database_factory(postgres_container: PostgresContainer) -> Callable[..., Database]:
    """Factory for Database instances wired to the test container."""
    from contacts_bench.db import Database

    def _make(db_name: str | None = None) -> Database:
        return Database(
            db_name=db_name or _unique_test_db_name(),
            host=postgres_container.get_container_host_ip(),
            port=int(postgres_container.get_exposed_port(5432)),
            user=postgres_container.username,
            password=postgres_container.password,
            min_pool_size=1,
            max_pool_size=3,
        )

    return _make
