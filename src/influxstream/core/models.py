"""Core domain models for line protocol points and Timestream records."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1
UINT64_MAX = 2**64 - 1


class FieldKind(Enum):
    """Type of a line protocol field value."""

    BOOLEAN = "boolean"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT64 = "float64"
    STRING = "string"


class TimeUnit(str, Enum):
    """Unit of a record timestamp, as named by the Timestream API."""

    MILLISECONDS = "MILLISECONDS"
    MICROSECONDS = "MICROSECONDS"
    SECONDS = "SECONDS"
    NANOSECONDS = "NANOSECONDS"


class MeasureValueType(str, Enum):
    """Timestream measure value types."""

    BOOLEAN = "BOOLEAN"
    BIGINT = "BIGINT"
    DOUBLE = "DOUBLE"
    VARCHAR = "VARCHAR"
    MULTI = "MULTI"


class PartitionKeyType(str, Enum):
    """Kind of a customer-defined partition key."""

    DIMENSION = "DIMENSION"
    MEASURE = "MEASURE"


class PartitionKeyEnforcement(str, Enum):
    """Whether records must carry the partition key dimension."""

    REQUIRED = "REQUIRED"
    OPTIONAL = "OPTIONAL"


def _format_float(value: float) -> str:
    # Shortest round-trip digits, positional notation, no trailing ".0".
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


@dataclass(frozen=True)
class FieldValue:
    """A typed line protocol field value.

    Attributes:
        kind: The field type.
        value: The Python value (bool, int, float or str).
    """

    kind: FieldKind
    value: bool | int | float | str

    def __post_init__(self) -> None:
        if self.kind is FieldKind.INT64 and not INT64_MIN <= self.value <= INT64_MAX:
            raise ValueError(f"integer field value out of range: {self.value}")
        if self.kind is FieldKind.UINT64 and not 0 <= self.value <= UINT64_MAX:
            raise ValueError(f"unsigned field value out of range: {self.value}")

    @classmethod
    def boolean(cls, value: bool) -> "FieldValue":
        return cls(FieldKind.BOOLEAN, value)

    @classmethod
    def int64(cls, value: int) -> "FieldValue":
        return cls(FieldKind.INT64, value)

    @classmethod
    def uint64(cls, value: int) -> "FieldValue":
        return cls(FieldKind.UINT64, value)

    @classmethod
    def float64(cls, value: float) -> "FieldValue":
        return cls(FieldKind.FLOAT64, float(value))

    @classmethod
    def string(cls, value: str) -> "FieldValue":
        return cls(FieldKind.STRING, value)

    def __str__(self) -> str:
        """Render the canonical text form used for Timestream measure values."""
        if self.kind is FieldKind.BOOLEAN:
            return "true" if self.value else "false"
        if self.kind is FieldKind.FLOAT64:
            return _format_float(float(self.value))
        return str(self.value)


@dataclass(frozen=True)
class Metric:
    """A single parsed line protocol point.

    Attributes:
        name: Measurement name, used as the destination table name.
        fields: Ordered (key, value) pairs. Must not be empty.
        timestamp: Integer timestamp in the unit given by the request precision.
        tags: Ordered (key, value) pairs, or None when the line had no tag set.
    """

    name: str
    fields: tuple[tuple[str, FieldValue], ...]
    timestamp: int
    tags: tuple[tuple[str, str], ...] | None = None

    def __post_init__(self) -> None:
        if not self.fields:
            raise ValueError(f"metric {self.name!r} has no fields")


@dataclass(frozen=True)
class Dimension:
    """A Timestream dimension derived from a tag."""

    name: str
    value: str


@dataclass(frozen=True)
class MeasureValue:
    """One named measure inside a multi-measure record."""

    name: str
    value: str
    type: MeasureValueType


@dataclass(frozen=True)
class Record:
    """A Timestream multi-measure record.

    Attributes:
        measure_name: Configured measure name shared by every record of a call.
        measure_values: One entry per line protocol field, in field order.
        time: Timestamp rendered as a decimal string.
        time_unit: Unit of ``time``.
        dimensions: One entry per tag, in tag order.
        measure_value_type: Always MULTI for this schema.
    """

    measure_name: str
    measure_values: tuple[MeasureValue, ...]
    time: str
    time_unit: TimeUnit
    dimensions: tuple[Dimension, ...] = ()
    measure_value_type: MeasureValueType = MeasureValueType.MULTI


@dataclass(frozen=True)
class PartitionKey:
    """Customer-defined partition key for new tables.

    A DIMENSION key needs both a dimension name and an enforcement level.
    A MEASURE key takes neither; Timestream rejects the request otherwise.
    """

    type: PartitionKeyType
    dimension_name: str | None = None
    enforcement: PartitionKeyEnforcement | None = None

    def __post_init__(self) -> None:
        if self.type is PartitionKeyType.DIMENSION:
            if not self.dimension_name or self.enforcement is None:
                raise ValueError(
                    "dimension partition keys need a dimension name and enforcement"
                )
        elif self.dimension_name is not None or self.enforcement is not None:
            raise ValueError(
                "measure partition keys take no dimension name or enforcement"
            )


@dataclass(frozen=True)
class TableConfig:
    """Properties applied to tables created on demand.

    Attributes:
        magnetic_store_retention_days: Magnetic store retention period.
        memory_store_retention_hours: Memory store retention period.
        enable_magnetic_store_writes: Whether late data may be written.
        partition_key: Optional customer-defined partition key.
    """

    magnetic_store_retention_days: int
    memory_store_retention_hours: int
    enable_magnetic_store_writes: bool
    partition_key: PartitionKey | None = field(default=None)
