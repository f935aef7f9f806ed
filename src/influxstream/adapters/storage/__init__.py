"""Storage adapters implementing the Timestream write port."""

from influxstream.adapters.storage.in_memory import InMemoryTimestream
from influxstream.adapters.storage.sqlite import SQLiteTimestream

__all__ = [
    "InMemoryTimestream",
    "SQLiteTimestream",
]
