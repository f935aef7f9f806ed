"""On-demand provisioning of the destination database and tables.

Timestream allows at most one database or table creation call per second,
so the provisioner sleeps before every creation call. The sleep is not a
retry: it runs once per creation attempt whether or not the call succeeds.
"""

import asyncio

from influxstream.core.errors import (
    ConfigError,
    ProvisionError,
    ResourceMissing,
)
from influxstream.core.logs import get_logger
from influxstream.core.models import TableConfig
from influxstream.core.ports import TimestreamWritePort

logger = get_logger(__name__)

# Seconds to wait before each database/table creation call.
TIMESTREAM_API_WAIT_SECONDS = 1.0


class ResourceProvisioner:
    """Verifies and creates databases and tables through a write port.

    A missing resource is created only when creation of that kind is enabled;
    otherwise it is reported as ``ResourceMissing``. Lookup and creation
    failures are reported as ``ProvisionError``.
    """

    def __init__(
        self,
        client: TimestreamWritePort,
        *,
        enable_database_creation: bool = False,
        enable_table_creation: bool = False,
        table_config: TableConfig | None = None,
        creation_wait_seconds: float = TIMESTREAM_API_WAIT_SECONDS,
    ) -> None:
        """Initialize the provisioner.

        Args:
            client: Store write client.
            enable_database_creation: Create the database when it is missing.
            enable_table_creation: Create tables when they are missing.
            table_config: Properties for created tables. Required when table
                creation is enabled.
            creation_wait_seconds: Delay before each creation call.
        """
        self._client = client
        self.enable_database_creation = enable_database_creation
        self.enable_table_creation = enable_table_creation
        self.table_config = table_config
        self.creation_wait_seconds = creation_wait_seconds

    async def _wait_for_creation_quota(self) -> None:
        await asyncio.sleep(self.creation_wait_seconds)

    async def ensure_database(self, database: str) -> None:
        """Make sure ``database`` exists, creating it if allowed.

        Raises:
            ResourceMissing: The database is missing and creation is disabled.
            ProvisionError: The lookup or the creation call failed.
        """
        try:
            exists = await self._client.database_exists(database)
        except Exception as exc:
            raise ProvisionError("database", database, exc) from exc
        logger.debug("Database %s exists: %s", database, exists)
        if exists:
            return
        if not self.enable_database_creation:
            raise ResourceMissing("database", database)

        await self._wait_for_creation_quota()
        logger.info("Creating new database %s", database)
        try:
            await self._client.create_database(database)
        except Exception as exc:
            raise ProvisionError("database", database, exc) from exc

    async def ensure_table(self, database: str, table: str) -> None:
        """Make sure ``table`` exists in ``database``, creating it if allowed.

        Raises:
            ResourceMissing: The table is missing and creation is disabled.
            ConfigError: Creation is enabled but no table config was given.
            ProvisionError: The lookup or the creation call failed.
        """
        try:
            exists = await self._client.table_exists(database, table)
        except Exception as exc:
            raise ProvisionError("table", table, exc) from exc
        logger.debug("Table %s in database %s exists: %s", table, database, exists)
        if exists:
            return
        if not self.enable_table_creation:
            raise ResourceMissing("table", table)
        if self.table_config is None:
            raise ConfigError(
                f"Table {table} cannot be created without a table configuration"
            )

        await self._wait_for_creation_quota()
        logger.info("Creating new table %s for database %s", table, database)
        try:
            await self._client.create_table(database, table, self.table_config)
        except Exception as exc:
            raise ProvisionError("table", table, exc) from exc
