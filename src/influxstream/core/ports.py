"""Port interface for the time-series store write client.

The core depends only on this protocol, not on boto3 or any concrete store.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from influxstream.core.models import Record, TableConfig


@runtime_checkable
class TimestreamWritePort(Protocol):
    """Port for the store operations the ingestion pipeline needs.

    Adapters implementing this protocol report "not found" from the existence
    checks as ``False`` and raise ``StoreError`` for every other failure.
    Examples: TimestreamWriter, InMemoryTimestream, SQLiteTimestream.
    """

    async def database_exists(self, database: str) -> bool:
        """Return True if the database exists, False if it was not found."""
        ...

    async def create_database(self, database: str) -> None:
        """Create a database."""
        ...

    async def table_exists(self, database: str, table: str) -> bool:
        """Return True if the table exists, False if it was not found."""
        ...

    async def create_table(
        self, database: str, table: str, config: TableConfig
    ) -> None:
        """Create a table with the given retention and partitioning settings."""
        ...

    async def write_records(
        self, database: str, table: str, records: Sequence[Record]
    ) -> None:
        """Write at most 100 records to a table in one call."""
        ...
