"""Tests for the store port protocol."""

import pytest

from influxstream.adapters.storage import InMemoryTimestream, SQLiteTimestream
from influxstream.adapters.timestream import TimestreamWriter
from influxstream.core.ports import TimestreamWritePort


class TestTimestreamWritePort:
    """Tests for TimestreamWritePort."""

    @pytest.mark.core
    def test_class_implementing_protocol_is_recognized(self) -> None:
        """A class with the five async methods satisfies the port."""

        class FakeStore:
            async def database_exists(self, database):
                return True

            async def create_database(self, database):
                pass

            async def table_exists(self, database, table):
                return True

            async def create_table(self, database, table, config):
                pass

            async def write_records(self, database, table, records):
                pass

        assert isinstance(FakeStore(), TimestreamWritePort)

    @pytest.mark.core
    def test_declares_the_pipeline_operations(self) -> None:
        """The port names every store call the pipeline makes."""
        for name in (
            "database_exists",
            "create_database",
            "table_exists",
            "create_table",
            "write_records",
        ):
            assert hasattr(TimestreamWritePort, name)

    @pytest.mark.core
    @pytest.mark.parametrize(
        "adapter",
        [
            InMemoryTimestream(),
            SQLiteTimestream(":memory:"),
            TimestreamWriter(object()),
        ],
        ids=["in-memory", "sqlite", "boto3"],
    )
    def test_adapters_implement_the_port(self, adapter) -> None:
        """Every store adapter satisfies the port."""
        assert isinstance(adapter, TimestreamWritePort)

    @pytest.mark.core
    def test_recording_fake_implements_the_port(self, recording_store) -> None:
        """The test double used across the suite satisfies the port."""
        assert isinstance(recording_store, TimestreamWritePort)

    @pytest.mark.core
    def test_unrelated_object_does_not_implement_the_port(self) -> None:
        """Objects missing the methods are rejected."""
        assert not isinstance(object(), TimestreamWritePort)
