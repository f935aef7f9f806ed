"""Shared query parameter parsing utilities for framework adapters.

This module provides utilities for parsing the parameters of a line protocol
write request that are common across the request adapters (ASGI, FastAPI,
Lambda).
"""

from collections.abc import Mapping, Sequence

from influxstream.core.models import TimeUnit

# InfluxDB precision tokens; anything else means nanoseconds.
PRECISION_UNITS = {
    "ms": TimeUnit.MILLISECONDS,
    "us": TimeUnit.MICROSECONDS,
    "s": TimeUnit.SECONDS,
}


def precision_from_token(token: str | None) -> TimeUnit:
    """Map an InfluxDB precision token to a time unit.

    Args:
        token: ``ms``, ``us`` or ``s``; ``None`` or any other value selects
            nanoseconds.

    Returns:
        The matching TimeUnit.
    """
    if token is None:
        return TimeUnit.NANOSECONDS
    return PRECISION_UNITS.get(token, TimeUnit.NANOSECONDS)


def _parse_precision_param(
    params: Mapping[str, str | Sequence[str] | None] | None,
) -> TimeUnit:
    """Parse the 'precision' query parameter.

    Args:
        params: Query parameters. A value may be a single string or a list of
            strings (as returned by urllib.parse.parse_qs), in which case the
            first element is used.

    Returns:
        The requested TimeUnit, NANOSECONDS if missing or unrecognized.
    """
    if not params:
        return TimeUnit.NANOSECONDS
    value = params.get("precision")
    if isinstance(value, str):
        return precision_from_token(value)
    if value:
        first = value[0]
        return precision_from_token(first if isinstance(first, str) else None)
    return TimeUnit.NANOSECONDS
