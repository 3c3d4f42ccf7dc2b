"""Sequential migration of native contacts into the indexed store."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from contextlib import aclosing
from typing import Protocol

from opentelemetry import trace

from contacts_bench.errors import SourceEnumerationError, StoreError
from contacts_bench.models import ContactRecord, MigrationReport, SortHint
from contacts_bench.normalize import normalize
from contacts_bench.sources import ContactSource

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

FirstResultFn = Callable[[float], None]


class RecordSink(Protocol):
    """Write side of the store used by the pipeline."""

    async def insert(self, record: ContactRecord) -> None:
        """Add one record, failing on a duplicate id."""
        ...


def elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 3)


async def migrate(
    source: ContactSource,
    store: RecordSink,
    *,
    sort_hint: SortHint | None = None,
    on_first: FirstResultFn | None = None,
) -> MigrationReport:
    """Copy every contact from *source* into *store*, in enumeration order.

    Each record is normalized and inserted before the next one is pulled, so
    at most one insert is in flight. A failed insert or pull stops the run;
    rows already inserted stay. The raised error carries ``partial_count``.

    Args:
        on_first: Called with the elapsed milliseconds once the first record
            has been stored.
    """
    started = time.perf_counter()
    migrated = 0

    with tracer.start_as_current_span("contacts.migrate") as span:
        span.set_attribute("contacts.source", source.name)
        try:
            async with aclosing(source.enumerate(sort_hint)) as contacts:
                while True:
                    try:
                        raw = await anext(contacts)
                    except StopAsyncIteration:
                        break
                    except SourceEnumerationError:
                        raise
                    except Exception as exc:
                        raise SourceEnumerationError(
                            f"Source {source.name} failed after {migrated} contacts: {exc}"
                        ) from exc

                    await store.insert(normalize(raw))
                    migrated += 1
                    if migrated == 1 and on_first is not None:
                        on_first(elapsed_ms(started))
        except (SourceEnumerationError, StoreError) as exc:
            exc.partial_count = migrated
            span.set_attribute("contacts.count", migrated)
            logger.error(
                "Migration from %s aborted after %d contacts: %s", source.name, migrated, exc
            )
            raise

        span.set_attribute("contacts.count", migrated)

    report = MigrationReport(count=migrated, elapsed_ms=elapsed_ms(started))
    logger.info(
        "Migrated %d contacts from %s in %.1f ms", report.count, source.name, report.elapsed_ms
    )
    return report
