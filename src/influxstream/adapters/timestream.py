"""Amazon Timestream write adapter backed by boto3.

boto3 clients are blocking, so every call runs in a worker thread through
``asyncio.to_thread``. One client is shared by all concurrent writes.
"""

import asyncio
from collections.abc import Sequence
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from influxstream.core.errors import StoreError
from influxstream.core.logs import get_logger
from influxstream.core.models import (
    PartitionKeyType,
    Record,
    TableConfig,
)

logger = get_logger(__name__)

SERVICE_NAME = "timestream-write"

# Enough pooled connections for the default write concurrency.
_MAX_POOL_CONNECTIONS = 32


def get_connection(region: str, **client_kwargs: Any) -> Any:
    """Create a boto3 ``timestream-write`` client for ``region``.

    Args:
        region: AWS region name.
        **client_kwargs: Extra keyword arguments for ``boto3.client``.
    """
    client_kwargs.setdefault(
        "config", Config(max_pool_connections=_MAX_POOL_CONNECTIONS)
    )
    return boto3.client(SERVICE_NAME, region_name=region, **client_kwargs)


def _error_code(exc: ClientError) -> str | None:
    return exc.response.get("Error", {}).get("Code")


def _store_error(exc: Exception) -> StoreError:
    if not isinstance(exc, ClientError):
        return StoreError(str(exc))
    code = _error_code(exc)
    message = exc.response.get("Error", {}).get("Message", str(exc))
    rejected = exc.response.get("RejectedRecords")
    if rejected:
        details = "; ".join(
            f"record {item.get('RecordIndex')}: {item.get('Reason')}"
            for item in rejected
        )
        message = f"{message} (rejected records: {details})"
    return StoreError(message, code=code)


def record_to_request(record: Record) -> dict[str, Any]:
    """Translate a record into the WriteRecords request shape."""
    return {
        "Dimensions": [
            {"Name": dimension.name, "Value": dimension.value}
            for dimension in record.dimensions
        ],
        "MeasureName": record.measure_name,
        "MeasureValueType": record.measure_value_type.value,
        "MeasureValues": [
            {"Name": value.name, "Value": value.value, "Type": value.type.value}
            for value in record.measure_values
        ],
        "Time": record.time,
        "TimeUnit": record.time_unit.value,
    }


def table_request(database: str, table: str, config: TableConfig) -> dict[str, Any]:
    """Translate a table config into the CreateTable request shape."""
    request: dict[str, Any] = {
        "DatabaseName": database,
        "TableName": table,
        "RetentionProperties": {
            "MemoryStoreRetentionPeriodInHours": config.memory_store_retention_hours,
            "MagneticStoreRetentionPeriodInDays": config.magnetic_store_retention_days,
        },
        "MagneticStoreWriteProperties": {
            "EnableMagneticStoreWrites": config.enable_magnetic_store_writes,
        },
    }
    key = config.partition_key
    if key is not None:
        partition_key: dict[str, Any] = {"Type": key.type.value}
        if key.type is PartitionKeyType.DIMENSION:
            partition_key["Name"] = key.dimension_name
            partition_key["EnforcementInRecord"] = key.enforcement.value
        request["Schema"] = {"CompositePartitionKey": [partition_key]}
    return request


class TimestreamWriter:
    """TimestreamWritePort implementation over a boto3 client.

    Example:
        ```python
        writer = TimestreamWriter(get_connection("us-east-1"))
        await writer.write_records("db", "cpu", records)
        ```
    """

    def __init__(self, client: Any) -> None:
        """Initialize the writer.

        Args:
            client: A boto3 ``timestream-write`` client, or any object with the
                same methods.
        """
        self._client = client

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise _store_error(exc) from exc

    async def _exists(self, operation: str, **kwargs: Any) -> bool:
        method = getattr(self._client, operation)
        try:
            await asyncio.to_thread(method, **kwargs)
        except ClientError as exc:
            if _error_code(exc) == "ResourceNotFoundException":
                return False
            raise _store_error(exc) from exc
        except BotoCoreError as exc:
            raise _store_error(exc) from exc
        return True

    async def database_exists(self, database: str) -> bool:
        return await self._exists("describe_database", DatabaseName=database)

    async def create_database(self, database: str) -> None:
        await self._call("create_database", DatabaseName=database)
        logger.debug("Created database %s", database)

    async def table_exists(self, database: str, table: str) -> bool:
        return await self._exists(
            "describe_table", DatabaseName=database, TableName=table
        )

    async def create_table(
        self, database: str, table: str, config: TableConfig
    ) -> None:
        await self._call("create_table", **table_request(database, table, config))
        logger.debug("Created table %s in database %s", table, database)

    async def write_records(
        self, database: str, table: str, records: Sequence[Record]
    ) -> None:
        response = await self._call(
            "write_records",
            DatabaseName=database,
            TableName=table,
            Records=[record_to_request(record) for record in records],
        )
        ingested = (response or {}).get("RecordsIngested", {})
        logger.debug(
            "Wrote %d records to %s.%s (ingested: %s)",
            len(records),
            database,
            table,
            ingested.get("Total", len(records)),
        )
