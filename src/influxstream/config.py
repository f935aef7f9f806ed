"""Connector configuration loaded once from the environment.

Variable names match the ones the Lambda deployment templates set, so they
are lower case. Nothing outside this module reads the environment.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from influxstream.core.errors import ConfigError
from influxstream.core.ingestion import DEFAULT_MAX_CONCURRENCY
from influxstream.core.models import (
    PartitionKey,
    PartitionKeyEnforcement,
    PartitionKeyType,
    TableConfig,
)

DIMENSION_PARTITION_KEY_TYPE = "dimension"
MEASURE_PARTITION_KEY_TYPE = "measure"

DEFAULT_WRITE_TIMEOUT_SECONDS = 30.0
DEFAULT_LOG_LEVEL = "INFO"

_TRUE_VALUES = frozenset({"true", "t", "1"})
_FALSE_VALUES = frozenset({"false", "f", "0"})


def parse_bool(value: str) -> bool:
    """Return True for ``true``, ``t`` or ``1`` (any case), else False."""
    return value.strip().lower() in _TRUE_VALUES


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if value is None:
        raise ConfigError(f"{name} environment variable is not defined")
    return value


def _parse_int(environ: Mapping[str, str], name: str) -> int:
    raw = _require(environ, name)
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _load_partition_key(environ: Mapping[str, str]) -> PartitionKey | None:
    key_type = environ.get("custom_partition_key_type")
    if key_type is None:
        return None
    if key_type == MEASURE_PARTITION_KEY_TYPE:
        return PartitionKey(type=PartitionKeyType.MEASURE)
    if key_type != DIMENSION_PARTITION_KEY_TYPE:
        raise ConfigError(
            "custom_partition_key_type can only be "
            f"{DIMENSION_PARTITION_KEY_TYPE} or {MEASURE_PARTITION_KEY_TYPE}"
        )

    dimension = environ.get("custom_partition_key_dimension")
    if not dimension:
        raise ConfigError(
            f"If custom_partition_key_type is {DIMENSION_PARTITION_KEY_TYPE}, "
            "then custom_partition_key_dimension must be defined"
        )
    enforce = environ.get("enforce_custom_partition_key")
    if enforce is None:
        raise ConfigError(
            "enforce_custom_partition_key value must be specified (true or false) "
            f"when custom_partition_key_type is {DIMENSION_PARTITION_KEY_TYPE}"
        )
    enforce = enforce.strip().lower()
    if enforce in _TRUE_VALUES:
        enforcement = PartitionKeyEnforcement.REQUIRED
    elif enforce in _FALSE_VALUES:
        enforcement = PartitionKeyEnforcement.OPTIONAL
    else:
        raise ConfigError(
            f"enforce_custom_partition_key must be true or false, got {enforce!r}"
        )
    return PartitionKey(
        type=PartitionKeyType.DIMENSION,
        dimension_name=dimension,
        enforcement=enforcement,
    )


@dataclass(frozen=True)
class ConnectorConfig:
    """Immutable runtime configuration for one connector process.

    Attributes:
        region: AWS region of the Timestream endpoint.
        database_name: Destination database.
        measure_name: Measure name given to every multi-measure record.
        enable_database_creation: Create the database when it is missing.
        enable_table_creation: Create tables when they are missing.
        table_config: Properties for created tables; set when table creation
            is enabled.
        max_concurrency: Permits of the global write limiter.
        write_timeout_seconds: Per-write timeout, or None for no timeout.
        log_level: Level name passed to ``configure_logging``.
        local_invocation: Whether responses target a local Lambda emulator.
    """

    region: str
    database_name: str
    measure_name: str
    enable_database_creation: bool = False
    enable_table_creation: bool = False
    table_config: TableConfig | None = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    write_timeout_seconds: float | None = DEFAULT_WRITE_TIMEOUT_SECONDS
    log_level: str = DEFAULT_LOG_LEVEL
    local_invocation: bool = False

    def __post_init__(self) -> None:
        if not self.measure_name.strip():
            raise ConfigError(
                "measure_name_for_multi_measure_records must be a non-empty string"
            )
        if self.enable_table_creation and self.table_config is None:
            raise ConfigError("table creation is enabled but no table config is set")
        if self.max_concurrency < 1:
            raise ConfigError("max_concurrency must be at least 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ConnectorConfig":
        """Build the configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Raises:
            ConfigError: If a required variable is missing or invalid.
        """
        if environ is None:
            environ = os.environ

        region = _require(environ, "region")
        database_name = _require(environ, "database_name")
        enable_database_creation = parse_bool(
            _require(environ, "enable_database_creation")
        )
        enable_table_creation = parse_bool(_require(environ, "enable_table_creation"))
        measure_name = _require(environ, "measure_name_for_multi_measure_records")

        partition_key = _load_partition_key(environ)
        table_config = None
        if enable_table_creation:
            table_config = TableConfig(
                magnetic_store_retention_days=_parse_int(
                    environ, "mag_store_retention_period"
                ),
                memory_store_retention_hours=_parse_int(
                    environ, "mem_store_retention_period"
                ),
                enable_magnetic_store_writes=parse_bool(
                    _require(environ, "enable_mag_store_writes")
                ),
                partition_key=partition_key,
            )

        max_concurrency = DEFAULT_MAX_CONCURRENCY
        if "max_concurrency" in environ:
            max_concurrency = _parse_int(environ, "max_concurrency")

        write_timeout: float | None = DEFAULT_WRITE_TIMEOUT_SECONDS
        raw_timeout = environ.get("write_timeout_seconds")
        if raw_timeout is not None:
            try:
                write_timeout = float(raw_timeout)
            except ValueError:
                raise ConfigError(
                    f"write_timeout_seconds must be a number, got {raw_timeout!r}"
                ) from None
            if write_timeout <= 0:
                write_timeout = None

        return cls(
            region=region,
            database_name=database_name,
            measure_name=measure_name,
            enable_database_creation=enable_database_creation,
            enable_table_creation=enable_table_creation,
            table_config=table_config,
            max_concurrency=max_concurrency,
            write_timeout_seconds=write_timeout,
            log_level=environ.get("log_level", DEFAULT_LOG_LEVEL).upper(),
            local_invocation="local_invocation" in environ,
        )
