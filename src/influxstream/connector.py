"""Request-level entry point: parse, build records, provision and write."""

import time

from influxstream.config import ConnectorConfig
from influxstream.core.encoding.line_protocol import parse_line_protocol
from influxstream.core.errors import ParseError
from influxstream.core.ingestion import IngestionEngine, IngestionSummary
from influxstream.core.logs import get_logger
from influxstream.core.models import TimeUnit
from influxstream.core.ports import TimestreamWritePort
from influxstream.core.provisioning import (
    TIMESTREAM_API_WAIT_SECONDS,
    ResourceProvisioner,
)
from influxstream.core.records import (
    MultiTableMultiMeasure,
    build_records,
    get_builder,
)

logger = get_logger(__name__)


class Connector:
    """Ingests line protocol request bodies into one Timestream database.

    The connector is built once per process and shared by every request. It
    keeps no per-request state, so concurrent ``ingest`` calls are safe.

    Example:
        ```python
        config = ConnectorConfig.from_env()
        connector = Connector(config, TimestreamWriter(get_connection(config.region)))
        summary = await connector.ingest(body, TimeUnit.NANOSECONDS)
        ```
    """

    def __init__(
        self,
        config: ConnectorConfig,
        client: TimestreamWritePort,
        *,
        creation_wait_seconds: float = TIMESTREAM_API_WAIT_SECONDS,
    ) -> None:
        self.config = config
        self._client = client
        self._builder = get_builder(MultiTableMultiMeasure(config.measure_name))
        provisioner = ResourceProvisioner(
            client,
            enable_database_creation=config.enable_database_creation,
            enable_table_creation=config.enable_table_creation,
            table_config=config.table_config,
            creation_wait_seconds=creation_wait_seconds,
        )
        self._engine = IngestionEngine(
            client,
            config.database_name,
            provisioner=provisioner,
            provision_database=True,
            provision_tables=True,
            max_concurrency=config.max_concurrency,
            write_timeout_seconds=config.write_timeout_seconds,
        )

    async def ingest(
        self, body: bytes | str, precision: TimeUnit = TimeUnit.NANOSECONDS
    ) -> IngestionSummary:
        """Ingest one request body.

        Args:
            body: Line protocol text, or UTF-8 encoded bytes.
            precision: Unit of the timestamps in ``body``.

        Returns:
            The ingestion summary; empty when the body holds no points.

        Raises:
            ParseError: If the body is not valid UTF-8 or not line protocol.
            IngestionError: If provisioning or writing fails.
        """
        if isinstance(body, bytes):
            try:
                text = body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ParseError(f"request body is not valid UTF-8: {exc}") from exc
        else:
            text = body

        start = time.perf_counter()
        try:
            metrics = parse_line_protocol(text)
        except ParseError as exc:
            logger.warning("Rejected request: %s", exc)
            raise
        logger.debug(
            "Parsed %d metrics in %.3f ms",
            len(metrics),
            (time.perf_counter() - start) * 1000,
        )
        if not metrics:
            logger.info("Request contained no points")
            return IngestionSummary()

        batch = build_records(self._builder, metrics, precision)
        for table, records in batch.items():
            logger.debug("Table %s: %d records", table, len(records))
        return await self._engine.ingest_all(batch)
