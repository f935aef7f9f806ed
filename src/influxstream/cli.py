"""Command-line entry point.

Usage:
    influxstream ingest points.lp --precision ms
    cat points.lp | influxstream ingest - --sqlite local.db
    influxstream check points.lp
"""

import argparse
import asyncio
import sys
from collections import Counter
from collections.abc import Sequence
from pathlib import Path

from influxstream.adapters.frameworks.query_params import (
    PRECISION_UNITS,
    precision_from_token,
)
from influxstream.adapters.logging import configure_logging
from influxstream.adapters.storage.sqlite import SQLiteTimestream
from influxstream.adapters.timestream import TimestreamWriter, get_connection
from influxstream.config import ConnectorConfig
from influxstream.connector import Connector
from influxstream.core.encoding.line_protocol import parse_line_protocol
from influxstream.core.errors import IngestionError
from influxstream.core.ingestion import IngestionSummary
from influxstream.core.ports import TimestreamWritePort


def _read_input(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def _build_client(
    config: ConnectorConfig, sqlite_path: str | None
) -> TimestreamWritePort:
    if sqlite_path is not None:
        return SQLiteTimestream(sqlite_path)
    return TimestreamWriter(get_connection(config.region))


async def _ingest(
    config: ConnectorConfig,
    client: TimestreamWritePort,
    body: bytes,
    precision: str | None,
) -> IngestionSummary:
    connector = Connector(config, client)
    try:
        return await connector.ingest(body, precision_from_token(precision))
    finally:
        close = getattr(client, "close", None)
        if close is not None:
            await close()


def _run_ingest(args: argparse.Namespace) -> int:
    config = ConnectorConfig.from_env()
    configure_logging(args.log_level or config.log_level)
    body = _read_input(args.source)
    client = _build_client(config, args.sqlite)
    summary = asyncio.run(_ingest(config, client, body, args.precision))
    print(
        f"Ingested {summary.records} records into {summary.tables} tables "
        f"({summary.chunks} writes)"
    )
    return 0


def _run_check(args: argparse.Namespace) -> int:
    configure_logging(args.log_level or "WARNING")
    text = _read_input(args.source).decode("utf-8")
    metrics = parse_line_protocol(text)
    counts = Counter(metric.name for metric in metrics)
    for table, count in counts.items():
        print(f"{table}\t{count}")
    print(f"{len(metrics)} points in {len(counts)} tables")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="influxstream",
        description="Ingest InfluxDB line protocol into Amazon Timestream.",
    )
    parser.add_argument("--log-level", help="Override the log_level setting.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser(
        "ingest", help="Write a line protocol file using the environment config."
    )
    ingest.add_argument("source", help="Path to a line protocol file, or - for stdin.")
    ingest.add_argument(
        "--precision",
        choices=sorted(PRECISION_UNITS) + ["ns"],
        help="Timestamp precision (default: ns).",
    )
    ingest.add_argument(
        "--sqlite",
        metavar="PATH",
        help="Write to a local SQLite file instead of Timestream.",
    )
    ingest.set_defaults(func=_run_ingest)

    check = subparsers.add_parser(
        "check", help="Parse a line protocol file and report points per table."
    )
    check.add_argument("source", help="Path to a line protocol file, or - for stdin.")
    check.set_defaults(func=_run_check)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except (IngestionError, UnicodeDecodeError, OSError) as exc:
        print(f"influxstream: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
