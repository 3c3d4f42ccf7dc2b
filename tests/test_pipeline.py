"""Tests for contacts_bench.pipeline — sequential migration into the store."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest

from contacts_bench.errors import DuplicateKeyError, SourceEnumerationError, StoreIOError
from contacts_bench.models import RawContact, SortHint
from contacts_bench.pipeline import migrate
from contacts_bench.sources import ContactSource, StaticContactSource

pytestmark = pytest.mark.unit


class _FailingSource(ContactSource):
    """Yields the given contacts, then raises."""

    def __init__(self, contacts: list[dict], error: Exception) -> None:
        self._contacts = [RawContact.model_validate(c) for c in contacts]
        self._error = error
        self.closed = False

    @property
    def name(self) -> str:
        return "failing"

    async def enumerate(self, sort_hint: SortHint | None = None) -> AsyncIterator[RawContact]:
        try:
            for contact in self._contacts:
                yield contact
            raise self._error
        finally:
            self.closed = True


class _RecordingSource(StaticContactSource):
    def __init__(self, contacts) -> None:
        super().__init__(contacts, name="recording")
        self.hints: list[SortHint | None] = []

    def enumerate(self, sort_hint: SortHint | None = None):
        self.hints.append(sort_hint)
        return super().enumerate(sort_hint)


THREE_CONTACTS = [
    {"id": "zeta", "familyName": ["Zeta"]},
    {"id": "acme", "org": ["Acme"]},
    {"id": "empty"},
]


async def test_migrates_every_contact(memory_store):
    report = await migrate(StaticContactSource(THREE_CONTACTS), memory_store)
    assert report.count == 3
    assert report.elapsed_ms >= 0
    assert set(memory_store.records) == {"zeta", "acme", "empty"}


async def test_inserts_follow_enumeration_order_one_at_a_time(memory_store):
    source = StaticContactSource(
        [{"id": "3", "givenName": ["Cy"]}, {"id": "1", "givenName": ["Al"]}, {"id": "2"}]
    )
    await migrate(source, memory_store)
    # Default hint: givenName ascending, nameless last.
    assert memory_store.insert_calls == ["1", "3", "2"]
    assert memory_store.max_in_flight == 1


async def test_sort_hint_is_passed_to_source(memory_store):
    source = _RecordingSource([{"id": "1"}])
    hint = SortHint(sort_by="familyName", sort_order="descending")
    await migrate(source, memory_store, sort_hint=hint)
    assert source.hints == [hint]


async def test_three_contacts_scan_order_and_groups(memory_store):
    await migrate(StaticContactSource(THREE_CONTACTS), memory_store)
    scanned = [record async for record in memory_store.scan_ordered()]
    assert [r.id for r in scanned] == ["acme", "zeta", "empty"]
    assert memory_store.records["empty"].group is None
    assert memory_store.records["zeta"].group == "Z"
    assert memory_store.records["acme"].sort_key == ["ACME#"]


async def test_on_first_called_once(memory_store):
    seen: list[float] = []
    await migrate(StaticContactSource(THREE_CONTACTS), memory_store, on_first=seen.append)
    assert len(seen) == 1
    assert seen[0] >= 0


async def test_empty_source(memory_store):
    seen: list[float] = []
    report = await migrate(StaticContactSource([]), memory_store, on_first=seen.append)
    assert report.count == 0
    assert seen == []


async def test_duplicate_aborts_and_reports_partial_count(memory_store):
    source = StaticContactSource(
        [
            {"id": "a", "givenName": ["A"]},
            {"id": "a", "givenName": ["B"]},
            {"id": "c", "givenName": ["C"]},
        ]
    )
    with pytest.raises(DuplicateKeyError) as exc_info:
        await migrate(source, memory_store)

    assert exc_info.value.partial_count == 1
    assert exc_info.value.record_id == "a"
    assert memory_store.insert_calls == ["a", "a"]
    assert memory_store.records["a"].display_name.given_name == ["A"]


async def test_store_failure_keeps_inserted_rows(memory_store):
    memory_store.fail_insert_at = 2
    with pytest.raises(StoreIOError) as exc_info:
        await migrate(StaticContactSource(THREE_CONTACTS), memory_store)
    assert exc_info.value.partial_count == 2
    assert len(memory_store.records) == 2


async def test_source_error_is_wrapped_with_partial_count(memory_store):
    source = _FailingSource([{"id": "1"}, {"id": "2"}], RuntimeError("cursor died"))
    with pytest.raises(SourceEnumerationError, match="cursor died") as exc_info:
        await migrate(source, memory_store)
    assert exc_info.value.partial_count == 2
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert source.closed
    assert set(memory_store.records) == {"1", "2"}


async def test_typed_source_error_passes_through(memory_store):
    error = SourceEnumerationError("native failure")
    source = _FailingSource([{"id": "1"}], error)
    with pytest.raises(SourceEnumerationError) as exc_info:
        await migrate(source, memory_store)
    assert exc_info.value is error
    assert error.partial_count == 1


async def test_source_closed_when_insert_fails(memory_store):
    source = _FailingSource([{"id": "x"}, {"id": "x"}, {"id": "y"}], RuntimeError("unreached"))
    with pytest.raises(DuplicateKeyError):
        await migrate(source, memory_store)
    assert source.closed


async def test_large_source_does_not_recurse(memory_store):
    contacts = [{"id": f"c{i:05d}", "givenName": [f"N{i}"]} for i in range(5000)]
    report = await migrate(StaticContactSource(contacts), memory_store)
    assert report.count == 5000
    assert await memory_store.count() == 5000


async def test_name_starting_with_hash_sorts_before_empty_contact(memory_store):
    source = StaticContactSource(
        [
            {"id": "empty"},
            {"id": "named", "givenName": ["#1 Fan"]},
            {"id": "zeta", "familyName": ["Zeta"]},
        ]
    )
    await migrate(source, memory_store)
    order = [record.id async for record in memory_store.scan_ordered()]
    assert order == ["named", "zeta", "empty"]
    assert memory_store.records["named"].sort_key == ["#1 FAN"]
