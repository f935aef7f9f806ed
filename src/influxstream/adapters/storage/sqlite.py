"""SQLite implementation of the Timestream write port.

Lets the connector run against a local file when no AWS account is at hand,
and keeps what was written around for inspection afterwards.
"""

import asyncio
import json
import sqlite3
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

import aiosqlite

from influxstream.core.errors import StoreError
from influxstream.core.models import (
    Dimension,
    MeasureValue,
    MeasureValueType,
    Record,
    TableConfig,
    TimeUnit,
)

MAX_RECORDS_PER_WRITE = 100

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ts_databases (
    name TEXT PRIMARY KEY
);
CREATE TABLE IF NOT EXISTS ts_tables (
    database_name TEXT NOT NULL REFERENCES ts_databases(name),
    name TEXT NOT NULL,
    config TEXT NOT NULL DEFAULT '{}',
    PRIMARY KEY (database_name, name)
);
CREATE TABLE IF NOT EXISTS ts_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    database_name TEXT NOT NULL,
    table_name TEXT NOT NULL,
    measure_name TEXT NOT NULL,
    time TEXT NOT NULL,
    time_unit TEXT NOT NULL,
    dimensions TEXT NOT NULL DEFAULT '[]',
    measure_values TEXT NOT NULL DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_ts_records_table
    ON ts_records(database_name, table_name);
"""

_SELECT_DATABASE = "SELECT 1 FROM ts_databases WHERE name = ?"
_INSERT_DATABASE = "INSERT INTO ts_databases (name) VALUES (?)"
_SELECT_TABLE = "SELECT 1 FROM ts_tables WHERE database_name = ? AND name = ?"
_INSERT_TABLE = "INSERT INTO ts_tables (database_name, name, config) VALUES (?, ?, ?)"
_INSERT_RECORD = """
INSERT INTO ts_records
    (database_name, table_name, measure_name, time, time_unit, dimensions,
     measure_values)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""
_SELECT_RECORDS = """
SELECT measure_name, time, time_unit, dimensions, measure_values FROM ts_records
WHERE database_name = ? AND table_name = ?
ORDER BY id ASC
"""
_COUNT_RECORDS = "SELECT COUNT(*) FROM ts_records"
_COUNT_TABLE_RECORDS = (
    "SELECT COUNT(*) FROM ts_records WHERE database_name = ? AND table_name = ?"
)


class AsyncConnectionManager:
    """Opens store connections, creating the schema on first use.

    A ":memory:" store keeps one connection open for its whole life.
    """

    def __init__(self, db_path: str, schema: str) -> None:
        self._db_path = db_path
        self._schema = schema
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._persistent_conn: aiosqlite.Connection | None = None

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            if self._db_path == ":memory:":
                self._persistent_conn = await aiosqlite.connect(":memory:")
                await self._persistent_conn.executescript(self._schema)
            else:
                async with aiosqlite.connect(self._db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(self._schema)
            self._initialized = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        await self._ensure_initialized()
        if self._persistent_conn is not None:
            yield self._persistent_conn
            return
        db = await aiosqlite.connect(self._db_path)
        try:
            yield db
        finally:
            await db.close()

    async def close(self) -> None:
        """Close the connection held by a ":memory:" store."""
        if self._persistent_conn is not None:
            await self._persistent_conn.close()
            self._persistent_conn = None
            self._initialized = False


def _config_to_json(config: TableConfig) -> str:
    return json.dumps(asdict(config))


def _record_to_row(database: str, table: str, record: Record) -> tuple[Any, ...]:
    return (
        database,
        table,
        record.measure_name,
        record.time,
        record.time_unit.value,
        json.dumps([[d.name, d.value] for d in record.dimensions]),
        json.dumps([[v.name, v.value, v.type.value] for v in record.measure_values]),
    )


def _record_from_row(row: sqlite3.Row | aiosqlite.Row) -> Record:
    return Record(
        measure_name=row[0],
        time=row[1],
        time_unit=TimeUnit(row[2]),
        dimensions=tuple(
            Dimension(name=name, value=value) for name, value in json.loads(row[3])
        ),
        measure_values=tuple(
            MeasureValue(name=name, value=value, type=MeasureValueType(kind))
            for name, value, kind in json.loads(row[4])
        ),
    )


# @tra: Adapter.SQLiteTimestream.ImplementsWritePort
# @tra: Adapter.SQLiteTimestream.PersistsAcrossInstances
class SQLiteTimestream:
    """SQLite implementation of TimestreamWritePort.

    Stores databases, tables and records using aiosqlite for non-blocking
    async operations. Uses WAL mode for file databases. SQLite failures are
    reported as ``StoreError``.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._manager = AsyncConnectionManager(db_path, _SCHEMA)

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        await self._manager.close()

    async def _exists(self, query: str, params: tuple[Any, ...]) -> bool:
        try:
            async with self._manager.connection() as db:
                async with db.execute(query, params) as cursor:
                    return await cursor.fetchone() is not None
        except sqlite3.Error as exc:
            raise StoreError(str(exc), code="SQLiteError") from exc

    async def _insert(self, query: str, params: tuple[Any, ...], what: str) -> None:
        try:
            async with self._manager.connection() as db:
                await db.execute(query, params)
                await db.commit()
        except sqlite3.IntegrityError as exc:
            raise StoreError(
                f"{what} already exists", code="ConflictException"
            ) from exc
        except sqlite3.Error as exc:
            raise StoreError(str(exc), code="SQLiteError") from exc

    async def database_exists(self, database: str) -> bool:
        return await self._exists(_SELECT_DATABASE, (database,))

    async def create_database(self, database: str) -> None:
        await self._insert(_INSERT_DATABASE, (database,), f"Database {database}")

    async def table_exists(self, database: str, table: str) -> bool:
        return await self._exists(_SELECT_TABLE, (database, table))

    async def create_table(
        self, database: str, table: str, config: TableConfig
    ) -> None:
        if not await self.database_exists(database):
            raise StoreError(
                f"Database {database} does not exist",
                code="ResourceNotFoundException",
            )
        await self._insert(
            _INSERT_TABLE, (database, table, _config_to_json(config)), f"Table {table}"
        )

    async def write_records(
        self, database: str, table: str, records: Sequence[Record]
    ) -> None:
        if len(records) > MAX_RECORDS_PER_WRITE:
            raise StoreError(
                f"At most {MAX_RECORDS_PER_WRITE} records can be written per call, "
                f"got {len(records)}",
                code="ValidationException",
            )
        if not await self.table_exists(database, table):
            raise StoreError(
                f"Table {table} in database {database} does not exist",
                code="ResourceNotFoundException",
            )
        try:
            async with self._manager.connection() as db:
                await db.executemany(
                    _INSERT_RECORD,
                    [_record_to_row(database, table, record) for record in records],
                )
                await db.commit()
        except sqlite3.Error as exc:
            raise StoreError(str(exc), code="SQLiteError") from exc

    async def read_records(self, database: str, table: str) -> list[Record]:
        """Return the records written to a table, in write order."""
        async with self._manager.connection() as db:
            async with db.execute(_SELECT_RECORDS, (database, table)) as cursor:
                return [_record_from_row(row) async for row in cursor]

    async def count_records(
        self, database: str | None = None, table: str | None = None
    ) -> int:
        """Return the number of stored records, overall or for one table."""
        async with self._manager.connection() as db:
            if database is not None and table is not None:
                cursor = await db.execute(_COUNT_TABLE_RECORDS, (database, table))
            else:
                cursor = await db.execute(_COUNT_RECORDS)
            async with cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0
