"""Conversion of parsed metrics into Timestream records.

Only the multi-table multi-measure schema exists today: each measurement
becomes a table, each field a measure of one multi-measure record, and each
tag a dimension. ``SchemaType`` is a closed union so that further schemas
(single table, single measure) are added as new variants here.
"""

import time
from collections.abc import Sequence
from dataclasses import dataclass

from influxstream.core.errors import ConfigError
from influxstream.core.logs import get_logger
from influxstream.core.models import (
    Dimension,
    FieldKind,
    FieldValue,
    MeasureValue,
    MeasureValueType,
    Metric,
    Record,
    TimeUnit,
)

logger = get_logger(__name__)

_MEASURE_TYPES = {
    FieldKind.BOOLEAN: MeasureValueType.BOOLEAN,
    FieldKind.INT64: MeasureValueType.BIGINT,
    FieldKind.UINT64: MeasureValueType.BIGINT,
    FieldKind.FLOAT64: MeasureValueType.DOUBLE,
    FieldKind.STRING: MeasureValueType.VARCHAR,
}


@dataclass(frozen=True)
class MultiTableMultiMeasure:
    """One table per measurement, one multi-measure record per point.

    Attributes:
        measure_name: Measure name given to every record.
    """

    measure_name: str


SchemaType = MultiTableMultiMeasure


def measure_value_type(value: FieldValue) -> MeasureValueType:
    """Map a field value to the Timestream measure value type."""
    return _MEASURE_TYPES[value.kind]


def metric_to_record(
    measure_name: str, metric: Metric, precision: TimeUnit
) -> Record:
    """Convert one metric to a multi-measure record."""
    dimensions = tuple(
        Dimension(name=key, value=value) for key, value in metric.tags or ()
    )
    measure_values = tuple(
        MeasureValue(name=key, value=str(value), type=measure_value_type(value))
        for key, value in metric.fields
    )
    return Record(
        measure_name=measure_name,
        measure_values=measure_values,
        time=str(metric.timestamp),
        time_unit=precision,
        dimensions=dimensions,
    )


class MultiTableMultiMeasureBuilder:
    """Records builder for the multi-table multi-measure schema."""

    def __init__(self, measure_name: str) -> None:
        self.measure_name = measure_name

    def __repr__(self) -> str:
        return f"MultiTableMultiMeasureBuilder({self.measure_name!r})"

    def build_records(
        self, metrics: Sequence[Metric], precision: TimeUnit
    ) -> dict[str, list[Record]]:
        """Group records by destination table (the metric name).

        Tables appear in order of first occurrence; records keep input order.

        Raises:
            ConfigError: If the measure name is blank.
        """
        if not self.measure_name or not self.measure_name.strip():
            raise ConfigError(
                "measure_name_for_multi_measure_records must be a non-empty string"
            )
        batch: dict[str, list[Record]] = {}
        for metric in metrics:
            record = metric_to_record(self.measure_name, metric, precision)
            batch.setdefault(metric.name, []).append(record)
        return batch


RecordsBuilder = MultiTableMultiMeasureBuilder


def get_builder(schema: SchemaType) -> RecordsBuilder:
    """Return the records builder for a schema variant."""
    match schema:
        case MultiTableMultiMeasure(measure_name=measure_name):
            return MultiTableMultiMeasureBuilder(measure_name)
    raise ConfigError(f"unsupported schema type: {schema!r}")


def build_records(
    builder: RecordsBuilder, metrics: Sequence[Metric], precision: TimeUnit
) -> dict[str, list[Record]]:
    """Build the per-table batch map for a request."""
    start = time.perf_counter()
    batch = builder.build_records(metrics, precision)
    logger.debug(
        "Built %d records for %d tables in %.3f ms",
        sum(len(records) for records in batch.values()),
        len(batch),
        (time.perf_counter() - start) * 1000,
    )
    return batch
