"""Concurrent, chunked ingestion of a batch map into the store.

One ``asyncio.Semaphore`` bounds everything the engine sends to the store.
A table unit holds a permit only while it provisions its table and gives it
back before its chunk writes are dispatched; every chunk write then takes a
permit of its own. Holding the table permit across the writes would let
``max_concurrency`` table units starve their own chunks.
"""

import asyncio
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass

from influxstream.core.errors import ConfigError, WriteError
from influxstream.core.logs import get_logger
from influxstream.core.models import Record
from influxstream.core.ports import TimestreamWritePort
from influxstream.core.provisioning import ResourceProvisioner

logger = get_logger(__name__)

# Timestream accepts at most 100 records per WriteRecords call.
MAX_BATCH_SIZE = 100
DEFAULT_MAX_CONCURRENCY = 16


@dataclass(frozen=True)
class IngestionSummary:
    """Outcome of a successful ingestion call.

    Attributes:
        tables: Number of tables written to.
        records: Number of records written.
        chunks: Number of write calls made.
    """

    tables: int = 0
    records: int = 0
    chunks: int = 0


def chunk_records(
    records: Sequence[Record], size: int = MAX_BATCH_SIZE
) -> Iterator[Sequence[Record]]:
    """Split records into consecutive chunks of at most ``size``.

    Chunks preserve input order; only the last one may be shorter. An empty
    sequence yields no chunks.

    Raises:
        ValueError: If ``size`` is not positive.
    """
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(records), size):
        yield records[start : start + size]


class _FirstError:
    """Keeps the first failure seen and logs the rest."""

    def __init__(self) -> None:
        self.error: BaseException | None = None

    def record(self, exc: BaseException) -> None:
        if self.error is None:
            self.error = exc
        else:
            logger.warning("Suppressed additional ingestion failure: %s", exc)


class IngestionEngine:
    """Writes per-table record batches with bounded concurrency.

    Example:
        ```python
        engine = IngestionEngine(client, "metrics_db", max_concurrency=8)
        summary = await engine.ingest_all({"cpu": records})
        ```
    """

    def __init__(
        self,
        client: TimestreamWritePort,
        database_name: str,
        *,
        provisioner: ResourceProvisioner | None = None,
        provision_database: bool = False,
        provision_tables: bool = False,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        write_timeout_seconds: float | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client: Store write client shared by every task.
            database_name: Destination database.
            provisioner: Provisioner used when provisioning is enabled.
            provision_database: Verify (and maybe create) the database first.
            provision_tables: Verify (and maybe create) each table first.
            max_concurrency: Permits of the global limiter.
            write_timeout_seconds: Per-write timeout, or None for no timeout.

        Raises:
            ConfigError: If provisioning is enabled without a provisioner, or
                ``max_concurrency`` is not positive.
        """
        if max_concurrency < 1:
            raise ConfigError(
                f"max_concurrency must be at least 1, got {max_concurrency}"
            )
        if (provision_database or provision_tables) and provisioner is None:
            raise ConfigError("provisioning is enabled but no provisioner was given")
        self._client = client
        self.database_name = database_name
        self._provisioner = provisioner
        self.provision_database = provision_database
        self.provision_tables = provision_tables
        self.max_concurrency = max_concurrency
        self.write_timeout_seconds = write_timeout_seconds

    async def ingest_all(
        self, batch: Mapping[str, Sequence[Record]]
    ) -> IngestionSummary:
        """Ingest every table of a batch map.

        The database is provisioned once before any table task starts and a
        failure there aborts the call. Table tasks then run concurrently;
        every task is awaited before the first failure is raised.

        Returns:
            Counts of tables, records and write calls.

        Raises:
            ResourceMissing, ProvisionError, ConfigError, WriteError: The first
                failure observed, after all tasks have finished.
        """
        start = time.perf_counter()
        if self.provision_database and self._provisioner is not None:
            logger.debug("Provisioning database %s", self.database_name)
            await self._provisioner.ensure_database(self.database_name)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        tasks = [
            asyncio.create_task(
                self._ingest_table(semaphore, table, records), name=f"table:{table}"
            )
            for table, records in batch.items()
        ]
        logger.debug("Dispatched %d table tasks", len(tasks))

        failures = _FirstError()
        summary = IngestionSummary()
        for task in asyncio.as_completed(tasks):
            try:
                result = await task
            except Exception as exc:
                failures.record(exc)
            else:
                summary = IngestionSummary(
                    tables=summary.tables + result.tables,
                    records=summary.records + result.records,
                    chunks=summary.chunks + result.chunks,
                )

        elapsed_ms = (time.perf_counter() - start) * 1000
        if failures.error is not None:
            logger.debug("Ingestion failed after %.1f ms", elapsed_ms)
            raise failures.error
        logger.info(
            "Ingested %d records into %d tables with %d writes in %.1f ms",
            summary.records,
            summary.tables,
            summary.chunks,
            elapsed_ms,
        )
        return summary

    async def ingest_table(
        self, table: str, records: Sequence[Record]
    ) -> IngestionSummary:
        """Ingest the records of a single table with a fresh limiter."""
        semaphore = asyncio.Semaphore(self.max_concurrency)
        return await self._ingest_table(semaphore, table, records)

    async def _ingest_table(
        self, semaphore: asyncio.Semaphore, table: str, records: Sequence[Record]
    ) -> IngestionSummary:
        if self.provision_tables and self._provisioner is not None:
            async with semaphore:
                logger.debug("Provisioning table %s", table)
                await self._provisioner.ensure_table(self.database_name, table)

        chunks = list(chunk_records(records))
        logger.debug(
            "Writing %d records to table %s in %d chunks",
            len(records),
            table,
            len(chunks),
        )
        tasks = [
            asyncio.create_task(
                self._write_chunk(semaphore, table, index, chunk),
                name=f"chunk:{table}:{index}",
            )
            for index, chunk in enumerate(chunks)
        ]

        failures = _FirstError()
        for task in asyncio.as_completed(tasks):
            try:
                await task
            except Exception as exc:
                failures.record(exc)
        if failures.error is not None:
            raise failures.error
        return IngestionSummary(tables=1, records=len(records), chunks=len(chunks))

    async def _write_chunk(
        self,
        semaphore: asyncio.Semaphore,
        table: str,
        index: int,
        chunk: Sequence[Record],
    ) -> None:
        async with semaphore:
            try:
                await asyncio.wait_for(
                    self._client.write_records(self.database_name, table, chunk),
                    timeout=self.write_timeout_seconds,
                )
            except TimeoutError as exc:
                if self.write_timeout_seconds is None:
                    raise WriteError(
                        self.database_name, table, index, len(chunk), exc
                    ) from exc
                raise WriteError(
                    self.database_name,
                    table,
                    index,
                    len(chunk),
                    f"timed out after {self.write_timeout_seconds}s",
                ) from None
            except Exception as exc:
                raise WriteError(
                    self.database_name, table, index, len(chunk), exc
                ) from exc
        logger.debug(
            "Wrote chunk %d (%d records) to table %s", index, len(chunk), table
        )
