"""Read-side timing: ordered store traversal and native source traversal."""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Protocol

from opentelemetry import trace

from contacts_bench.errors import SourceEnumerationError, StoreError
from contacts_bench.models import ContactRecord, ScanReport, SortHint
from contacts_bench.normalize import normalize
from contacts_bench.pipeline import FirstResultFn, elapsed_ms
from contacts_bench.sources import ContactSource

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class OrderedScan(Protocol):
    """Read side of the store used by the benchmark."""

    def scan_ordered(self) -> AsyncIterator[ContactRecord]:
        """Yield every record in sort-key order."""
        ...


async def benchmark(store: OrderedScan, *, on_first: FirstResultFn | None = None) -> ScanReport:
    """Walk the store's ordered index to the end and time it.

    ``first_result_ms`` stays ``None`` for an empty store.
    """
    started = time.perf_counter()
    first_result_ms: float | None = None
    count = 0

    with tracer.start_as_current_span("contacts.scan_ordered") as span:
        try:
            async with aclosing(store.scan_ordered()) as records:
                async for _record in records:
                    count += 1
                    if count == 1:
                        first_result_ms = elapsed_ms(started)
                        if on_first is not None:
                            on_first(first_result_ms)
        except StoreError as exc:
            exc.partial_count = count
            span.set_attribute("contacts.count", count)
            logger.error("Ordered scan aborted after %d records: %s", count, exc)
            raise
        span.set_attribute("contacts.count", count)

    report = ScanReport(count=count, first_result_ms=first_result_ms, total_ms=elapsed_ms(started))
    logger.info(
        "Ordered scan of %d records: first=%s ms total=%.1f ms",
        report.count,
        report.first_result_ms,
        report.total_ms,
    )
    return report


async def benchmark_source(
    source: ContactSource,
    *,
    sort_hint: SortHint | None = None,
    on_first: FirstResultFn | None = None,
) -> ScanReport:
    """Walk the native source to the end, normalizing each contact, and time it.

    This is the baseline the store traversal is compared against.
    """
    started = time.perf_counter()
    first_result_ms: float | None = None
    count = 0

    with tracer.start_as_current_span("contacts.scan_source") as span:
        span.set_attribute("contacts.source", source.name)
        try:
            async with aclosing(source.enumerate(sort_hint)) as contacts:
                async for raw in contacts:
                    normalize(raw)
                    count += 1
                    if count == 1:
                        first_result_ms = elapsed_ms(started)
                        if on_first is not None:
                            on_first(first_result_ms)
        except SourceEnumerationError as exc:
            exc.partial_count = count
            logger.error("Source %s scan aborted after %d contacts: %s", source.name, count, exc)
            raise
        except Exception as exc:
            logger.error("Source %s scan aborted after %d contacts: %s", source.name, count, exc)
            raise SourceEnumerationError(
                f"Source {source.name} failed after {count} contacts: {exc}",
                partial_count=count,
            ) from exc
        span.set_attribute("contacts.count", count)

    report = ScanReport(count=count, first_result_ms=first_result_ms, total_ms=elapsed_ms(started))
    logger.info("Source %s scan of %d contacts in %.1f ms", source.name, count, report.total_ms)
    return report
