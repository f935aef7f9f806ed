"""In-memory implementation of the Timestream write port."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

from influxstream.core.errors import StoreError
from influxstream.core.models import (
    PartitionKeyEnforcement,
    PartitionKeyType,
    Record,
    TableConfig,
)

# Service limits enforced on every write, in bytes where sizes are concerned.
MAX_RECORDS_PER_WRITE = 100
MAX_NAME_BYTES = 256
MAX_DIMENSION_NAME_BYTES = 60
MAX_DIMENSION_BYTES = 2048
MAX_MEASURE_VALUE_BYTES = 2048
MAX_MEASURES_PER_RECORD = 256
MAX_MEASURES_PER_TABLE = 1024
MAX_DIMENSIONS_PER_TABLE = 128


def _size(text: str) -> int:
    return len(text.encode("utf-8"))


@dataclass
class StoredTable:
    """A table and everything written to it."""

    config: TableConfig | None
    records: list[Record] = field(default_factory=list)
    measure_names: set[str] = field(default_factory=set)
    dimension_names: set[str] = field(default_factory=set)


class InMemoryTimestream:
    """In-memory implementation of TimestreamWritePort.

    Keeps databases, tables and written records in dictionaries and rejects
    writes the real service would reject. A rejected write stores nothing.
    Suitable for tests and local runs where no AWS account is available.
    """

    def __init__(self) -> None:
        self._databases: dict[str, dict[str, StoredTable]] = {}
        self._lock = asyncio.Lock()
        self.write_calls = 0

    def add_database(self, database: str) -> None:
        """Create a database without going through the port."""
        self._databases.setdefault(database, {})

    def add_table(
        self, database: str, table: str, config: TableConfig | None = None
    ) -> None:
        """Create a table (and its database) without going through the port."""
        self.add_database(database)
        self._databases[database].setdefault(table, StoredTable(config=config))

    def records(self, database: str, table: str) -> list[Record]:
        """Return a copy of the records written to a table."""
        return list(self._databases[database][table].records)

    def tables(self, database: str) -> list[str]:
        """Return the table names of a database in creation order."""
        return list(self._databases.get(database, {}))

    async def database_exists(self, database: str) -> bool:
        return database in self._databases

    async def create_database(self, database: str) -> None:
        if _size(database) > MAX_NAME_BYTES:
            raise StoreError(
                f"Database name {database!r} exceeds {MAX_NAME_BYTES} bytes",
                code="ValidationException",
            )
        if database in self._databases:
            raise StoreError(
                f"Database {database} already exists", code="ConflictException"
            )
        self._databases[database] = {}

    async def table_exists(self, database: str, table: str) -> bool:
        if database not in self._databases:
            return False
        return table in self._databases[database]

    async def create_table(
        self, database: str, table: str, config: TableConfig
    ) -> None:
        if database not in self._databases:
            raise StoreError(
                f"Database {database} does not exist",
                code="ResourceNotFoundException",
            )
        if _size(table) > MAX_NAME_BYTES:
            raise StoreError(
                f"Table name exceeds {MAX_NAME_BYTES} bytes",
                code="ValidationException",
            )
        if table in self._databases[database]:
            raise StoreError(f"Table {table} already exists", code="ConflictException")
        self._databases[database][table] = StoredTable(config=config)

    async def write_records(
        self, database: str, table: str, records: Sequence[Record]
    ) -> None:
        stored = self._databases.get(database, {}).get(table)
        if stored is None:
            raise StoreError(
                f"Table {table} in database {database} does not exist",
                code="ResourceNotFoundException",
            )
        if len(records) > MAX_RECORDS_PER_WRITE:
            raise StoreError(
                f"At most {MAX_RECORDS_PER_WRITE} records can be written per call, "
                f"got {len(records)}",
                code="ValidationException",
            )
        async with self._lock:
            self.write_calls += 1
            self._check_records(stored, records)
            for record in records:
                stored.measure_names.update(v.name for v in record.measure_values)
                stored.dimension_names.update(d.name for d in record.dimensions)
            stored.records.extend(records)

    def _check_records(self, stored: StoredTable, records: Sequence[Record]) -> None:
        measures = set(stored.measure_names)
        dimensions = set(stored.dimension_names)
        required_dimension = None
        key = stored.config.partition_key if stored.config else None
        if (
            key is not None
            and key.type is PartitionKeyType.DIMENSION
            and key.enforcement is PartitionKeyEnforcement.REQUIRED
        ):
            required_dimension = key.dimension_name

        for index, record in enumerate(records):
            reason = self._record_problem(record, required_dimension)
            if reason is None:
                measures.update(value.name for value in record.measure_values)
                dimensions.update(d.name for d in record.dimensions)
                if len(measures) > MAX_MEASURES_PER_TABLE:
                    reason = (
                        f"table exceeds {MAX_MEASURES_PER_TABLE} unique measure names"
                    )
                elif len(dimensions) > MAX_DIMENSIONS_PER_TABLE:
                    reason = (
                        f"table exceeds {MAX_DIMENSIONS_PER_TABLE} unique "
                        "dimension names"
                    )
            if reason is not None:
                raise StoreError(
                    f"One or more records have been rejected "
                    f"(record {index}: {reason})",
                    code="RejectedRecordsException",
                )

    @staticmethod
    def _record_problem(record: Record, required_dimension: str | None) -> str | None:
        if _size(record.measure_name) > MAX_NAME_BYTES:
            return f"measure name exceeds {MAX_NAME_BYTES} bytes"
        if len(record.measure_values) > MAX_MEASURES_PER_RECORD:
            return f"record has more than {MAX_MEASURES_PER_RECORD} measures"
        for dimension in record.dimensions:
            if _size(dimension.name) > MAX_DIMENSION_NAME_BYTES:
                return f"dimension name exceeds {MAX_DIMENSION_NAME_BYTES} bytes"
            if _size(dimension.name) + _size(dimension.value) > MAX_DIMENSION_BYTES:
                return (
                    f"dimension {dimension.name!r} exceeds {MAX_DIMENSION_BYTES} bytes"
                )
        for value in record.measure_values:
            if _size(value.name) > MAX_NAME_BYTES:
                return f"measure value name exceeds {MAX_NAME_BYTES} bytes"
            if _size(value.value) > MAX_MEASURE_VALUE_BYTES:
                return (
                    f"measure value {value.name!r} exceeds "
                    f"{MAX_MEASURE_VALUE_BYTES} bytes"
                )
        if required_dimension is not None and not any(
            d.name == required_dimension for d in record.dimensions
        ):
            return f"missing required partition key dimension {required_dimension!r}"
        return None
