"""influxstream - ingest InfluxDB line protocol into Amazon Timestream."""

from influxstream.config import ConnectorConfig
from influxstream.connector import Connector
from influxstream.core.encoding.line_protocol import (
    encode_line,
    encode_lines,
    parse_line_protocol,
)
from influxstream.core.errors import (
    ConfigError,
    IngestionError,
    ParseError,
    ProvisionError,
    ResourceMissing,
    StoreError,
    WriteError,
)
from influxstream.core.ingestion import (
    MAX_BATCH_SIZE,
    IngestionEngine,
    IngestionSummary,
    chunk_records,
)
from influxstream.core.logs import get_logger
from influxstream.core.models import FieldValue, Metric, Record, TimeUnit
from influxstream.core.provisioning import ResourceProvisioner
from influxstream.core.records import MultiTableMultiMeasure, build_records, get_builder

__version__ = "0.1.0"

__all__ = [
    "MAX_BATCH_SIZE",
    "ConfigError",
    "Connector",
    "ConnectorConfig",
    "FieldValue",
    "IngestionEngine",
    "IngestionError",
    "IngestionSummary",
    "Metric",
    "MultiTableMultiMeasure",
    "ParseError",
    "ProvisionError",
    "Record",
    "ResourceMissing",
    "ResourceProvisioner",
    "StoreError",
    "TimeUnit",
    "WriteError",
    "build_records",
    "chunk_records",
    "encode_line",
    "encode_lines",
    "get_builder",
    "get_logger",
    "parse_line_protocol",
]
