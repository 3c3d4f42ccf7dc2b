"""Indexed contact store backed by PostgreSQL JSONB.

One logical table ``list`` keyed by contact id holds the canonical record as a
JSONB document. The ``orderString`` index orders rows by the collation form of
``sortKey[0]``; three auxiliary indices cover the name fields and the
organization. The schema is versioned and created lazily by ``open_store``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import asyncpg
from pydantic import ValidationError

from contacts_bench.db import Database
from contacts_bench.errors import DuplicateKeyError, StoreIOError, StoreOpenError
from contacts_bench.models import ContactRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2
TABLE_NAME = "list"
DEFAULT_SCAN_BATCH_SIZE = 500

# pg_advisory_xact_lock key serializing concurrent schema upgrades.
_SCHEMA_LOCK_ID = 0x636F6E74

_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

_CREATE_VERSION_TABLE = """
    CREATE TABLE IF NOT EXISTS store_schema (
        id BOOLEAN PRIMARY KEY DEFAULT TRUE CHECK (id),
        version INTEGER NOT NULL
    )
"""

_SCHEMA_V2 = (
    'DROP TABLE IF EXISTS "list"',
    """
    CREATE TABLE "list" (
        id TEXT PRIMARY KEY,
        value JSONB NOT NULL,
        order_key TEXT NOT NULL
    )
    """,
    'CREATE INDEX "orderString" ON "list" (order_key COLLATE "C", id)',
    """CREATE INDEX "displayNameGiven" ON "list" ((value -> 'displayName' -> 'givenName'))""",
    """CREATE INDEX "displayNameFamily" ON "list" ((value -> 'displayName' -> 'familyName'))""",
    """CREATE INDEX "org" ON "list" ((value ->> 'org'))""",
)

_SCAN_QUERY = 'SELECT value FROM "list" ORDER BY order_key COLLATE "C", id'


def _decode_document(val: Any) -> dict[str, Any]:
    """Decode a JSONB column; asyncpg hands JSONB back as text without a codec."""
    if isinstance(val, str):
        val = json.loads(val)
    if not isinstance(val, dict):
        raise StoreIOError(f"Stored record is not a JSON object: {type(val).__name__}")
    return val


def _record_from_row(val: Any) -> ContactRecord:
    try:
        return ContactRecord.model_validate(_decode_document(val))
    except (ValidationError, ValueError) as exc:
        raise StoreIOError(f"Stored record is malformed: {exc}") from exc


async def ensure_schema(conn: asyncpg.Connection) -> int | None:
    """Create or upgrade the store schema to ``SCHEMA_VERSION``.

    Runs in a single transaction so a failed upgrade leaves no partial tables
    or indices behind. Versions older than 2 are recreated from scratch; no
    data is carried over.

    Returns:
        The version found before the call (``None`` for a fresh database).

    Raises:
        StoreOpenError: The stored schema is newer than this code understands.
    """
    async with conn.transaction():
        await conn.execute("SELECT pg_advisory_xact_lock($1)", _SCHEMA_LOCK_ID)
        await conn.execute(_CREATE_VERSION_TABLE)
        current = await conn.fetchval("SELECT version FROM store_schema")
        if current is not None and current > SCHEMA_VERSION:
            raise StoreOpenError(
                f"Store schema version {current} is newer than supported version {SCHEMA_VERSION}"
            )
        if current == SCHEMA_VERSION:
            return current

        logger.info("Upgrading contacts store schema from %s to %s", current, SCHEMA_VERSION)
        for statement in _SCHEMA_V2:
            await conn.execute(statement)
        await conn.execute(
            """
            INSERT INTO store_schema (id, version) VALUES (TRUE, $1)
            ON CONFLICT (id) DO UPDATE SET version = EXCLUDED.version
            """,
            SCHEMA_VERSION,
        )
    return current


class ContactStore:
    """Handle on an opened, schema-checked contacts store."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @property
    def db(self) -> Database:
        return self._db

    def _require_pool(self) -> asyncpg.Pool:
        if self._db.pool is None:
            raise StoreIOError(f"Store '{self._db.db_name}' is closed")
        return self._db.pool

    async def insert(self, record: ContactRecord) -> None:
        """Add *record*; an existing id is never overwritten.

        Raises:
            DuplicateKeyError: A record with the same id is already stored.
            StoreIOError: The write failed for any other reason.
        """
        pool = self._require_pool()
        try:
            await pool.execute(
                'INSERT INTO "list" (id, value, order_key) VALUES ($1, $2::jsonb, $3)',
                record.id,
                json.dumps(record.to_document()),
                record.order_key,
            )
        except asyncpg.UniqueViolationError as exc:
            raise DuplicateKeyError(record.id) from exc
        except _DB_ERRORS as exc:
            raise StoreIOError(f"Insert of record {record.id!r} failed: {exc}") from exc

    async def get(self, record_id: str) -> ContactRecord | None:
        """Return the stored record for *record_id*, or ``None``."""
        pool = self._require_pool()
        try:
            value = await pool.fetchval('SELECT value FROM "list" WHERE id = $1', record_id)
        except _DB_ERRORS as exc:
            raise StoreIOError(f"Read of record {record_id!r} failed: {exc}") from exc
        if value is None:
            return None
        return _record_from_row(value)

    async def count(self) -> int:
        pool = self._require_pool()
        try:
            return await pool.fetchval('SELECT count(*) FROM "list"')
        except _DB_ERRORS as exc:
            raise StoreIOError(f"Count failed: {exc}") from exc

    async def clear(self) -> int:
        """Remove every record and return how many were deleted.

        Clearing an empty store succeeds and returns 0.
        """
        pool = self._require_pool()
        try:
            status = await pool.execute('DELETE FROM "list"')
        except _DB_ERRORS as exc:
            raise StoreIOError(f"Clear failed: {exc}") from exc
        deleted = int(status.split()[-1])
        logger.debug("Cleared contacts store: %d records", deleted)
        return deleted

    async def scan_ordered(
        self, *, batch_size: int = DEFAULT_SCAN_BATCH_SIZE
    ) -> AsyncIterator[ContactRecord]:
        """Yield every record ascending by sort key, ties broken by id.

        The connection, the read-only transaction and the server-side cursor
        are held until the iterator is exhausted or closed. Callers that may
        stop early should wrap the iterator in ``contextlib.aclosing``.
        """
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction(isolation="repeatable_read", readonly=True):
                    async for row in conn.cursor(_SCAN_QUERY, prefetch=batch_size):
                        yield _record_from_row(row["value"])
        except _DB_ERRORS as exc:
            raise StoreIOError(f"Ordered scan failed: {exc}") from exc

    async def close(self) -> None:
        await self._db.close()


async def open_store(db: Database, *, provision: bool = True) -> ContactStore:
    """Connect to *db* and bring its schema to ``SCHEMA_VERSION``.

    Args:
        db: Database whose pool the store will use. An already connected
            database keeps its pool.
        provision: Create the database on the server when it does not exist.

    Raises:
        StoreOpenError: The server is unreachable or the schema step failed.
    """
    opened_here = db.pool is None
    try:
        if opened_here:
            if provision:
                await db.provision()
            await db.connect()
        if db.pool is None:
            raise StoreOpenError(f"Contacts store '{db.db_name}' has no connection pool")
        async with db.pool.acquire() as conn:
            previous = await ensure_schema(conn)
    except StoreOpenError:
        if opened_here:
            await db.close()
        raise
    except _DB_ERRORS as exc:
        if opened_here:
            await db.close()
        raise StoreOpenError(f"Could not open contacts store '{db.db_name}': {exc}") from exc

    logger.info(
        "Contacts store open: db=%s schema_version=%s (was %s)",
        db.db_name,
        SCHEMA_VERSION,
        previous,
    )
    return ContactStore(db)
