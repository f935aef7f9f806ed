"""BDD step definitions for line protocol ingestion features.

Each When step runs one ingestion call to completion with ``asyncio.run`` and
keeps either the summary or the raised error on the scenario context.
"""

import asyncio
from dataclasses import dataclass, field

import pytest
from pytest_bdd import given, parsers, then, when

from influxstream.adapters.frameworks.query_params import precision_from_token
from influxstream.adapters.storage.in_memory import InMemoryTimestream
from influxstream.config import ConnectorConfig
from influxstream.connector import Connector
from influxstream.core.errors import (
    IngestionError,
    ParseError,
    ResourceMissing,
    WriteError,
)
from influxstream.core.ingestion import IngestionSummary
from influxstream.core.models import Record, TableConfig

MEASURE_NAME = "influxdb-measure"


@dataclass
class IngestionScenarioContext:
    """State shared between the steps of one scenario."""

    store: InMemoryTimestream | None = None
    connector: Connector | None = None
    database: str = ""
    summary: IngestionSummary | None = None
    error: IngestionError | None = None
    waits: list[float] = field(default_factory=list)

    def all_records(self) -> list[Record]:
        assert self.store is not None
        return [
            record
            for table in self.store.tables(self.database)
            for record in self.store.records(self.database, table)
        ]


@pytest.fixture
def ctx(no_creation_wait: list[float]) -> IngestionScenarioContext:
    """Fresh scenario context for each test."""
    return IngestionScenarioContext(waits=no_creation_wait)


def _ingest(ctx: IngestionScenarioContext, body: str, precision: str) -> None:
    assert ctx.connector is not None
    try:
        ctx.summary = asyncio.run(
            ctx.connector.ingest(body, precision_from_token(precision))
        )
    except IngestionError as exc:
        ctx.error = exc


# === Given ===
@given("an in-memory Timestream store")
def step_store(ctx: IngestionScenarioContext) -> None:
    ctx.store = InMemoryTimestream()


@given(parsers.parse('the store already has table "{table}" in database "{database}"'))
def step_existing_table(
    ctx: IngestionScenarioContext, table: str, database: str
) -> None:
    assert ctx.store is not None
    ctx.store.add_table(database, table)


@given(
    parsers.parse(
        'a connector for database "{database}" with database and table creation enabled'
    )
)
def step_connector_with_creation(
    ctx: IngestionScenarioContext, database: str, table_config: TableConfig
) -> None:
    assert ctx.store is not None
    config = ConnectorConfig(
        region="us-east-1",
        database_name=database,
        measure_name=MEASURE_NAME,
        enable_database_creation=True,
        enable_table_creation=True,
        table_config=table_config,
    )
    ctx.database = database
    ctx.connector = Connector(config, ctx.store)


@given(
    parsers.parse(
        'a connector for database "{database}" with measure name "{measure_name}"'
    )
)
def step_connector_without_creation(
    ctx: IngestionScenarioContext, database: str, measure_name: str
) -> None:
    assert ctx.store is not None
    config = ConnectorConfig(
        region="us-east-1", database_name=database, measure_name=measure_name
    )
    ctx.database = database
    ctx.connector = Connector(config, ctx.store)


# === When ===
@when(parsers.parse('the body below is ingested with precision "{precision}"'))
def step_ingest_body(
    ctx: IngestionScenarioContext, precision: str, docstring: str
) -> None:
    _ingest(ctx, docstring, precision)


@when("an empty body is ingested")
def step_ingest_empty(ctx: IngestionScenarioContext) -> None:
    _ingest(ctx, "", "ns")


@when(parsers.parse('{count:d} points for table "{table}" are ingested'))
def step_ingest_points(ctx: IngestionScenarioContext, count: int, table: str) -> None:
    body = "\n".join(f"{table},n=p{i} value={i}i {i}" for i in range(count))
    _ingest(ctx, body, "ns")


# === Then ===
@then("the request succeeds")
def step_succeeds(ctx: IngestionScenarioContext) -> None:
    assert ctx.error is None, f"unexpected error: {ctx.error}"
    assert ctx.summary is not None


@then(parsers.parse('the request fails with a parse error mentioning "{text}"'))
def step_parse_error(ctx: IngestionScenarioContext, text: str) -> None:
    assert isinstance(ctx.error, ParseError)
    assert text in str(ctx.error)


@then(parsers.parse('the request fails with a write error for table "{table}"'))
def step_write_error(ctx: IngestionScenarioContext, table: str) -> None:
    assert isinstance(ctx.error, WriteError)
    assert ctx.error.table == table


@then(parsers.parse('the request fails because {kind} "{name}" is missing'))
def step_resource_missing(ctx: IngestionScenarioContext, kind: str, name: str) -> None:
    assert isinstance(ctx.error, ResourceMissing)
    assert (ctx.error.kind, ctx.error.name) == (kind, name)


@then(parsers.re(r'table "(?P<table>[^"]+)" holds (?P<count>\d+) records?'))
def step_table_holds(ctx: IngestionScenarioContext, table: str, count: str) -> None:
    assert ctx.store is not None
    assert len(ctx.store.records(ctx.database, table)) == int(count)


@then(parsers.parse("the store received {count:d} write calls"))
def step_write_calls(ctx: IngestionScenarioContext, count: int) -> None:
    assert ctx.store is not None
    assert ctx.store.write_calls == count


@then(parsers.parse('every record has measure name "{measure_name}"'))
def step_measure_name(ctx: IngestionScenarioContext, measure_name: str) -> None:
    assert {r.measure_name for r in ctx.all_records()} == {measure_name}


@then(parsers.parse('every record has time unit "{unit}"'))
def step_time_unit(ctx: IngestionScenarioContext, unit: str) -> None:
    assert {r.time_unit.value for r in ctx.all_records()} == {unit}


@then(parsers.parse('the record in table "{table}" has the measures:'))
def step_measures(
    ctx: IngestionScenarioContext, table: str, datatable: list[list[str]]
) -> None:
    assert ctx.store is not None
    [record] = ctx.store.records(ctx.database, table)
    header, *rows = datatable
    assert header == ["name", "value", "type"]
    actual = [[v.name, v.value, v.type.value] for v in record.measure_values]
    assert actual == rows


@then(parsers.parse('the record in table "{table}" has dimensions "{dimensions}"'))
def step_dimensions(
    ctx: IngestionScenarioContext, table: str, dimensions: str
) -> None:
    assert ctx.store is not None
    [record] = ctx.store.records(ctx.database, table)
    actual = ",".join(f"{d.name}={d.value}" for d in record.dimensions)
    assert actual == dimensions


@then(parsers.parse('database "{database}" exists'))
def step_database_exists(ctx: IngestionScenarioContext, database: str) -> None:
    assert ctx.store is not None
    assert asyncio.run(ctx.store.database_exists(database))


@then(parsers.parse("{count:d} creation calls waited {seconds:f} seconds each"))
def step_creation_waits(
    ctx: IngestionScenarioContext, count: int, seconds: float
) -> None:
    assert ctx.waits == [seconds] * count
