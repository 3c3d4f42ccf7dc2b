"""Orchestration of the benchmark operations.

``ContactsBench`` runs one operation at a time: a scan never overlaps a
migration or a clear. Each operation writes its status lines to a report sink.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from opentelemetry import trace

from contacts_bench.benchmark import benchmark, benchmark_source
from contacts_bench.core.logging import operation_context
from contacts_bench.errors import ContactsBenchError
from contacts_bench.models import MigrationReport, ScanReport, SortHint
from contacts_bench.pipeline import elapsed_ms, migrate
from contacts_bench.reporting import ReportSink, format_report, log_sink
from contacts_bench.sources import ContactSource
from contacts_bench.store import ContactStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

StoreFactory = Callable[[], Awaitable[ContactStore]]

LABEL_SOURCE_FIRST = "first contact"
LABEL_SOURCE = "source"
LABEL_STORE_FIRST = "first contact from store"
LABEL_STORE = "store"
LABEL_FILL_FIRST = "first contact migrated"
LABEL_FILL = "filled store"
LABEL_CLEAR = "cleared store"


class ContactsBench:
    """Serializes source checks, migrations, clears and scans over one store."""

    def __init__(
        self,
        *,
        source: ContactSource,
        store_factory: StoreFactory,
        sink: ReportSink = log_sink,
        sort_hint: SortHint | None = None,
    ) -> None:
        self._source = source
        self._store_factory = store_factory
        self._sink = sink
        self._sort_hint = sort_hint or SortHint()
        self._store: ContactStore | None = None
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def _get_store(self) -> ContactStore:
        if self._store is None:
            self._store = await self._store_factory()
        return self._store

    @asynccontextmanager
    async def _exclusive(self, operation: str) -> AsyncIterator[None]:
        async with self._lock:
            with operation_context(operation):
                yield

    def _first(self, label: str) -> Callable[[float], None]:
        return lambda ms: self._sink(format_report(label, 1, ms))

    def _report_error(self, operation: str, exc: ContactsBenchError, started: float) -> None:
        count = exc.partial_count or 0
        self._sink(format_report(f"ERROR {operation}", count, elapsed_ms(started)))

    async def check_source(self) -> ScanReport:
        """Time a full walk of the native source."""
        async with self._exclusive("check_source"):
            started = time.perf_counter()
            try:
                report = await benchmark_source(
                    self._source,
                    sort_hint=self._sort_hint,
                    on_first=self._first(LABEL_SOURCE_FIRST),
                )
            except ContactsBenchError as exc:
                self._report_error("in source", exc, started)
                raise
            self._sink(format_report(LABEL_SOURCE, report.count, report.total_ms))
            return report

    async def fill(self) -> MigrationReport:
        """Migrate every source contact into the store."""
        async with self._exclusive("fill"):
            started = time.perf_counter()
            try:
                store = await self._get_store()
                report = await migrate(
                    self._source,
                    store,
                    sort_hint=self._sort_hint,
                    on_first=self._first(LABEL_FILL_FIRST),
                )
            except ContactsBenchError as exc:
                self._report_error("filling store", exc, started)
                raise
            self._sink(format_report(LABEL_FILL, report.count, report.elapsed_ms))
            return report

    async def clear(self) -> int:
        """Empty the store; returns the number of records removed."""
        async with self._exclusive("clear"):
            started = time.perf_counter()
            with tracer.start_as_current_span("contacts.clear") as span:
                try:
                    store = await self._get_store()
                    removed = await store.clear()
                except ContactsBenchError as exc:
                    self._report_error("clearing store", exc, started)
                    raise
                span.set_attribute("contacts.count", removed)
            self._sink(format_report(LABEL_CLEAR, removed, elapsed_ms(started)))
            return removed

    async def scan(self) -> ScanReport:
        """Time a full ordered traversal of the store."""
        async with self._exclusive("scan"):
            started = time.perf_counter()
            try:
                store = await self._get_store()
                report = await benchmark(store, on_first=self._first(LABEL_STORE_FIRST))
            except ContactsBenchError as exc:
                self._report_error("scanning store", exc, started)
                raise
            self._sink(format_report(LABEL_STORE, report.count, report.total_ms))
            return report

    async def close(self) -> None:
        async with self._lock:
            if self._store is not None:
                await self._store.close()
                self._store = None
