"""Example FastAPI application exposing the line protocol write endpoint.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    POST /api/v2/write?precision=<p>  - InfluxDB v2 style write
    POST /write?precision=<p>         - InfluxDB v1 style write
    GET  /records/{table}             - Records written to a table (demo only)

Storage:
    With ``INFLUXSTREAM_SQLITE`` set, records go to that SQLite file and no
    AWS account is needed. Otherwise the connector writes to Amazon
    Timestream using the environment variables read by
    ``ConnectorConfig.from_env``.

Try it:
    curl -XPOST 'localhost:8000/api/v2/write?precision=s' \\
        --data-binary 'cpu,host=a usage=1.5,cores=8i 1700000000'
"""

import os

from fastapi import FastAPI

from influxstream.adapters.frameworks.fastapi import create_write_router
from influxstream.adapters.logging import configure_logging
from influxstream.adapters.storage.sqlite import SQLiteTimestream
from influxstream.adapters.timestream import TimestreamWriter, get_connection
from influxstream.config import ConnectorConfig
from influxstream.connector import Connector
from influxstream.core.models import TableConfig

sqlite_path = os.environ.get("INFLUXSTREAM_SQLITE")

if sqlite_path:
    config = ConnectorConfig(
        region="local",
        database_name="example",
        measure_name="influxdb-measure",
        enable_database_creation=True,
        enable_table_creation=True,
        table_config=TableConfig(
            magnetic_store_retention_days=30,
            memory_store_retention_hours=24,
            enable_magnetic_store_writes=True,
        ),
    )
    store = SQLiteTimestream(sqlite_path)
    client = store
else:
    config = ConnectorConfig.from_env()
    store = None
    client = TimestreamWriter(get_connection(config.region))

configure_logging(config.log_level)

# One connector per process, shared by every request
connector = Connector(config, client)

app = FastAPI(title="Line Protocol to Timestream")
app.include_router(create_write_router(connector))


@app.get("/records/{table}")
async def read_table(table: str) -> dict[str, list[dict[str, object]]]:
    """Return the records written to ``table`` when running on SQLite."""
    if store is None:
        return {"records": []}
    records = await store.read_records(config.database_name, table)
    return {
        "records": [
            {
                "time": record.time,
                "time_unit": record.time_unit.value,
                "dimensions": {d.name: d.value for d in record.dimensions},
                "measures": {v.name: v.value for v in record.measure_values},
            }
            for record in records
        ]
    }
