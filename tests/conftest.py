"""Shared test fixtures for all test modules."""

import asyncio
from collections.abc import Callable, Sequence
from pathlib import Path

import pytest

from influxstream.config import ConnectorConfig
from influxstream.core.errors import StoreError
from influxstream.core.models import (
    Dimension,
    MeasureValue,
    MeasureValueType,
    Record,
    TableConfig,
    TimeUnit,
)
from influxstream.core.provisioning import ResourceProvisioner

try:
    import httpx
except ImportError:
    httpx = None


class RecordingStore:
    """Write port fake that records every call.

    Tracks how many writes are in flight at once, can fail or stall writes
    for chosen tables, and can fail lookups and creations.
    """

    def __init__(
        self,
        *,
        databases: Sequence[str] = ("testdb",),
        tables: Sequence[tuple[str, str]] = (),
        all_tables_exist: bool = True,
        write_delay: float = 0.0,
        failing_tables: Sequence[str] = (),
        stalled_tables: Sequence[str] = (),
        failing_lookups: Sequence[str] = (),
        failing_creations: Sequence[str] = (),
    ) -> None:
        self.databases = set(databases)
        self.tables = set(tables)
        self.all_tables_exist = all_tables_exist
        self.write_delay = write_delay
        self.failing_tables = set(failing_tables)
        self.stalled_tables = set(stalled_tables)
        self.failing_lookups = set(failing_lookups)
        self.failing_creations = set(failing_creations)
        self.calls: list[tuple[str, ...]] = []
        self.writes: list[tuple[str, list[Record]]] = []
        self.completed_writes = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def database_exists(self, database: str) -> bool:
        self.calls.append(("database_exists", database))
        if database in self.failing_lookups:
            raise StoreError("lookup failed", code="InternalServerException")
        return database in self.databases

    async def create_database(self, database: str) -> None:
        self.calls.append(("create_database", database))
        if database in self.failing_creations:
            raise StoreError("create failed", code="ValidationException")
        self.databases.add(database)

    async def table_exists(self, database: str, table: str) -> bool:
        self.calls.append(("table_exists", database, table))
        if table in self.failing_lookups:
            raise StoreError("lookup failed", code="InternalServerException")
        return self.all_tables_exist or (database, table) in self.tables

    async def create_table(
        self, database: str, table: str, config: TableConfig
    ) -> None:
        self.calls.append(("create_table", database, table))
        if table in self.failing_creations:
            raise StoreError("create failed", code="ValidationException")
        self.tables.add((database, table))

    async def write_records(
        self, database: str, table: str, records: Sequence[Record]
    ) -> None:
        self.calls.append(("write_records", database, table))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if table in self.stalled_tables:
                await asyncio.sleep(3600)
            if self.write_delay:
                await asyncio.sleep(self.write_delay)
            if table in self.failing_tables:
                raise StoreError(
                    f"write to {table} failed", code="ValidationException"
                )
            self.writes.append((table, list(records)))
            self.completed_writes += 1
        finally:
            self.in_flight -= 1

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def recording_store() -> RecordingStore:
    """Recording store where the database and every table exist."""
    return RecordingStore()


@pytest.fixture
def store_factory() -> Callable[..., RecordingStore]:
    """Factory for recording stores with custom behaviour."""
    return RecordingStore


@pytest.fixture
def make_record() -> Callable[..., Record]:
    """Factory for small multi-measure records."""

    def _make(
        value: int = 1,
        time: int = 1000,
        tags: dict[str, str] | None = None,
        measure_name: str = "metrics",
    ) -> Record:
        return Record(
            measure_name=measure_name,
            measure_values=(
                MeasureValue(
                    name="value", value=str(value), type=MeasureValueType.BIGINT
                ),
            ),
            time=str(time),
            time_unit=TimeUnit.MILLISECONDS,
            dimensions=tuple(
                Dimension(name=k, value=v) for k, v in (tags or {}).items()
            ),
        )

    return _make


@pytest.fixture
def table_config() -> TableConfig:
    """Table config used when table creation is enabled."""
    return TableConfig(
        magnetic_store_retention_days=30,
        memory_store_retention_hours=24,
        enable_magnetic_store_writes=True,
    )


@pytest.fixture
def connector_config(table_config: TableConfig) -> ConnectorConfig:
    """Connector config that creates missing databases and tables."""
    return ConnectorConfig(
        region="us-east-1",
        database_name="testdb",
        measure_name="metrics",
        enable_database_creation=True,
        enable_table_creation=True,
        table_config=table_config,
        write_timeout_seconds=5.0,
    )


@pytest.fixture
def base_environ() -> dict[str, str]:
    """Minimal valid environment for ConnectorConfig.from_env."""
    return {
        "region": "us-east-1",
        "database_name": "testdb",
        "enable_database_creation": "false",
        "enable_table_creation": "false",
        "measure_name_for_multi_measure_records": "metrics",
    }


@pytest.fixture
def sqlite_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for SQLite store tests."""
    return str(tmp_path / "timestream.db")


@pytest.fixture
def no_creation_wait(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace the wait before creation calls with a recorder.

    Returns the list of requested wait durations, one per creation attempt.
    """
    sleeps: list[float] = []

    async def _wait(self: ResourceProvisioner) -> None:
        sleeps.append(self.creation_wait_seconds)

    monkeypatch.setattr(ResourceProvisioner, "_wait_for_creation_quota", _wait)
    return sleeps


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(connector)
            async with asgi_test_client(app) as client:
                response = await client.post("/write", content=b"...")
    """
    if httpx is None:
        pytest.skip("httpx not installed")

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
