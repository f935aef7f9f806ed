"""AWS Lambda adapter for line protocol write requests.

The function is invoked through a Lambda function URL or API Gateway with the
line protocol in the request body. Failures are re-raised rather than turned
into an error response so the platform can route the event to a dead-letter
queue.
"""

import asyncio
import base64
import binascii
import json
from collections.abc import Callable
from typing import Any

from influxstream.adapters.frameworks.query_params import _parse_precision_param
from influxstream.adapters.logging import configure_logging
from influxstream.adapters.timestream import TimestreamWriter, get_connection
from influxstream.config import ConnectorConfig
from influxstream.connector import Connector
from influxstream.core.errors import ParseError
from influxstream.core.logs import get_logger
from influxstream.core.models import TimeUnit

logger = get_logger(__name__)

LambdaHandler = Callable[[dict[str, Any], Any], dict[str, Any]]

# Containers that may carry the query string, in lookup order.
_QUERY_CONTAINERS = ("queryStringParameters", "queryParameters")


def get_precision(event: dict[str, Any]) -> TimeUnit:
    """Return the timestamp precision requested by a Lambda event.

    Reads ``precision`` from ``queryStringParameters`` or, when that container
    is absent, from ``queryParameters``. A list value uses its first element.
    """
    for container in _QUERY_CONTAINERS:
        params = event.get(container)
        if params is not None:
            return _parse_precision_param(params)
    return TimeUnit.NANOSECONDS


def get_body(event: dict[str, Any]) -> bytes | str:
    """Return the request body of a Lambda event, base64-decoded if flagged.

    Raises:
        ParseError: If a base64 body cannot be decoded.
    """
    body = event.get("body") or ""
    if not event.get("isBase64Encoded"):
        return body
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ParseError(f"request body is not valid base64: {exc}") from exc


def success_response(local_invocation: bool = False) -> dict[str, Any]:
    """Build the response returned after a successful ingestion."""
    response: dict[str, Any] = {
        "statusCode": 200,
        "body": json.dumps({"message": "Success"}),
        "isBase64Encoded": False,
        "headers": {"Content-Type": "application/json"},
    }
    # Local emulators expect a cookies list in the response.
    if local_invocation:
        response["cookies"] = []
    return response


def create_lambda_handler(connector: Connector) -> LambdaHandler:
    """Create a Lambda handler that ingests each event with ``connector``.

    Args:
        connector: Connector shared by every invocation.

    Returns:
        A ``handler(event, context)`` callable.
    """

    def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
        precision = get_precision(event)
        body = get_body(event)
        summary = asyncio.run(connector.ingest(body, precision))
        logger.debug(
            "Invocation done: %d records, %d tables", summary.records, summary.tables
        )
        return success_response(connector.config.local_invocation)

    return handler


_default_handler: LambdaHandler | None = None


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Lambda entry point configured from the function's environment.

    The connector is built on the first invocation and reused by later ones.
    """
    global _default_handler
    if _default_handler is None:
        config = ConnectorConfig.from_env()
        configure_logging(config.log_level)
        client = TimestreamWriter(get_connection(config.region))
        _default_handler = create_lambda_handler(Connector(config, client))
    return _default_handler(event, context)
