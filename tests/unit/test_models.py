"""Tests for core domain models."""

import dataclasses

import pytest

from influxstream.core.models import (
    FieldKind,
    FieldValue,
    MeasureValueType,
    Metric,
    PartitionKey,
    PartitionKeyEnforcement,
    PartitionKeyType,
    Record,
    TimeUnit,
)


class TestFieldValue:
    """Tests for FieldValue."""

    @pytest.mark.core
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (FieldValue.float64(1.5), "1.5"),
            (FieldValue.float64(1.0), "1"),
            (FieldValue.float64(0.1), "0.1"),
            (FieldValue.float64(-2.25), "-2.25"),
            (FieldValue.float64(1e20), "100000000000000000000"),
            (FieldValue.float64(1.5e-7), "0.00000015"),
            (FieldValue.int64(-5), "-5"),
            (FieldValue.uint64(18446744073709551615), "18446744073709551615"),
            (FieldValue.boolean(True), "true"),
            (FieldValue.boolean(False), "false"),
            (FieldValue.string("a b"), "a b"),
        ],
    )
    def test_text_form(self, value: FieldValue, expected: str) -> None:
        """str() renders the text sent as a measure value."""
        assert str(value) == expected

    @pytest.mark.core
    def test_float64_coerces_integers(self) -> None:
        """float64() stores a float even when given an int."""
        value = FieldValue.float64(3)

        assert value.kind is FieldKind.FLOAT64
        assert isinstance(value.value, float)

    @pytest.mark.core
    @pytest.mark.parametrize(
        "factory, value",
        [
            (FieldValue.int64, 2**63),
            (FieldValue.int64, -(2**63) - 1),
            (FieldValue.uint64, -1),
            (FieldValue.uint64, 2**64),
        ],
    )
    def test_integer_range_is_enforced(self, factory, value: int) -> None:
        """Integer values outside their type's range are refused."""
        with pytest.raises(ValueError, match="out of range"):
            factory(value)

    @pytest.mark.core
    def test_is_immutable(self) -> None:
        """FieldValue is frozen."""
        value = FieldValue.int64(1)

        with pytest.raises(dataclasses.FrozenInstanceError):
            value.value = 2  # type: ignore[misc]


class TestMetric:
    """Tests for Metric."""

    @pytest.mark.core
    def test_requires_at_least_one_field(self) -> None:
        """A metric without fields cannot be built."""
        with pytest.raises(ValueError, match="no fields"):
            Metric(name="cpu", fields=(), timestamp=1)

    @pytest.mark.core
    def test_tags_default_to_none(self) -> None:
        """A metric built without tags has None, not an empty tuple."""
        metric = Metric(name="cpu", fields=(("v", FieldValue.int64(1)),), timestamp=1)

        assert metric.tags is None


class TestRecord:
    """Tests for Record."""

    @pytest.mark.core
    def test_defaults_to_multi_measure_without_dimensions(self) -> None:
        """Records are MULTI typed and carry no dimensions by default."""
        record = Record(
            measure_name="metrics",
            measure_values=(),
            time="1",
            time_unit=TimeUnit.SECONDS,
        )

        assert record.measure_value_type is MeasureValueType.MULTI
        assert record.dimensions == ()

    @pytest.mark.core
    def test_enum_values_match_api_names(self) -> None:
        """Enum values are the strings the Timestream API expects."""
        assert TimeUnit.MILLISECONDS.value == "MILLISECONDS"
        assert MeasureValueType.BIGINT.value == "BIGINT"
        assert PartitionKeyEnforcement.REQUIRED.value == "REQUIRED"


class TestPartitionKey:
    """Tests for PartitionKey validation."""

    @pytest.mark.core
    def test_dimension_key_with_name_and_enforcement(self) -> None:
        """A complete dimension key is accepted."""
        key = PartitionKey(
            type=PartitionKeyType.DIMENSION,
            dimension_name="host",
            enforcement=PartitionKeyEnforcement.OPTIONAL,
        )

        assert key.dimension_name == "host"

    @pytest.mark.core
    @pytest.mark.parametrize(
        "kwargs",
        [
            {},
            {"dimension_name": "host"},
            {"enforcement": PartitionKeyEnforcement.REQUIRED},
            {"dimension_name": "", "enforcement": PartitionKeyEnforcement.REQUIRED},
        ],
    )
    def test_dimension_key_requires_name_and_enforcement(self, kwargs) -> None:
        """A dimension key without its name or enforcement is refused."""
        with pytest.raises(ValueError):
            PartitionKey(type=PartitionKeyType.DIMENSION, **kwargs)

    @pytest.mark.core
    def test_measure_key_takes_no_dimension(self) -> None:
        """A measure key with a dimension name is refused."""
        with pytest.raises(ValueError):
            PartitionKey(type=PartitionKeyType.MEASURE, dimension_name="host")

    @pytest.mark.core
    def test_measure_key(self) -> None:
        """A bare measure key is accepted."""
        key = PartitionKey(type=PartitionKeyType.MEASURE)

        assert key.enforcement is None
