"""Error types raised by the ingestion pipeline.

Every error is terminal for the request that raised it; nothing in the
pipeline retries. Messages name the database or table involved.
"""


class IngestionError(Exception):
    """Base class for all ingestion failures."""


class ParseError(IngestionError):
    """A line of line protocol could not be parsed."""

    def __init__(
        self, reason: str, line_number: int | None = None, line: str | None = None
    ) -> None:
        self.reason = reason
        self.line_number = line_number
        self.line = line
        if line_number is None:
            super().__init__(f"Failed to parse line protocol: {reason}")
        else:
            super().__init__(f"Failed to parse line {line_number}: {reason}")


class ConfigError(IngestionError):
    """Configuration is missing or contradictory."""


class StoreError(IngestionError):
    """A call to the time-series store failed.

    Raised by store adapters. ``code`` carries the remote error code when the
    store reports one (e.g. ``ValidationException``).
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(f"{code}: {message}" if code else message)


class ResourceMissing(IngestionError):
    """A database or table does not exist and creation is disabled."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(
            f"{kind.capitalize()} {name} does not exist and {kind} creation "
            "is not enabled"
        )


class ProvisionError(IngestionError):
    """Looking up or creating a database or table failed."""

    def __init__(self, kind: str, name: str, cause: BaseException) -> None:
        self.kind = kind
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to provision {kind} {name}: {cause}")


class WriteError(IngestionError):
    """Writing a chunk of records failed."""

    def __init__(
        self,
        database: str,
        table: str,
        chunk_index: int,
        record_count: int,
        cause: BaseException | str,
    ) -> None:
        self.database = database
        self.table = table
        self.chunk_index = chunk_index
        self.record_count = record_count
        self.cause = cause
        super().__init__(
            f"Failed to write chunk {chunk_index} ({record_count} records) "
            f"to table {table} in database {database}: {cause}"
        )
