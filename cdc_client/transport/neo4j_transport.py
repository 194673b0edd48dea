"""
Neo4j Transport.

Reads the change feed through the official Neo4j async driver using the
``cdc.earliest``, ``cdc.current`` and ``cdc.query`` procedures. Every read is
one explicit read transaction, so the checkpoint and the change query observe
the same snapshot.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

from neo4j import READ_ACCESS, AsyncDriver, AsyncGraphDatabase, AsyncTransaction
from neo4j.exceptions import DriverError, Neo4jError

from cdc_client.config.settings import Neo4jSettings
from cdc_client.errors import ConnectivityError, MappingError
from cdc_client.model.events import ChangeEvent, ChangeIdentifier
from cdc_client.model.mapper import ResultMapper
from cdc_client.transport.base import CDCTransport, ChangeRead

logger = logging.getLogger(__name__)

CDC_EARLIEST_STATEMENT = "CALL cdc.earliest()"
CDC_CURRENT_STATEMENT = "CALL cdc.current()"
CDC_QUERY_STATEMENT = "CALL cdc.query($from, $selectors)"

SessionConfigSupplier = Callable[[], Dict[str, Any]]


def default_session_config() -> Dict[str, Any]:
    return {}


class Neo4jChangeRead(ChangeRead):
    """Change feed access bound to one read transaction."""

    def __init__(self, tx: AsyncTransaction):
        self._tx = tx

    async def _single_identifier(self, statement: str) -> ChangeIdentifier:
        try:
            result = await self._tx.run(statement)
            record = await result.single()
        except (Neo4jError, DriverError) as e:
            raise ConnectivityError(f"{statement} failed: {e}") from e

        if record is None:
            raise MappingError(f"{statement} returned no record")
        return ResultMapper.parse_change_identifier(record.data())

    async def earliest_id(self) -> ChangeIdentifier:
        return await self._single_identifier(CDC_EARLIEST_STATEMENT)

    async def current_id(self) -> ChangeIdentifier:
        return await self._single_identifier(CDC_CURRENT_STATEMENT)

    async def changes_since(
        self,
        cursor: ChangeIdentifier,
        selectors: Sequence[Dict[str, Any]],
    ) -> List[ChangeEvent]:
        params = {"from": cursor.id, "selectors": list(selectors)}
        logger.debug(f"Running cdc.query using parameters {params}")

        try:
            result = await self._tx.run(CDC_QUERY_STATEMENT, params)
            records = [record.data() async for record in result]
        except (Neo4jError, DriverError) as e:
            raise ConnectivityError(f"cdc.query failed: {e}") from e

        return [ResultMapper.parse_change_event(record) for record in records]


class Neo4jTransport(CDCTransport):
    """
    CDC transport backed by a Neo4j async driver.

    Args:
        driver: Driver used to open sessions
        session_config: Supplier of session keyword arguments
            (e.g. ``database``, ``impersonated_user``, ``bookmarks``)
        owns_driver: Close the driver when the transport is closed
    """

    def __init__(
        self,
        driver: AsyncDriver,
        session_config: Optional[SessionConfigSupplier] = None,
        owns_driver: bool = False,
    ):
        if driver is None:
            raise ValueError("driver is required")
        self._driver = driver
        self._session_config = session_config or default_session_config
        self._owns_driver = owns_driver

    @classmethod
    def from_settings(cls, settings: Neo4jSettings) -> "Neo4jTransport":
        """Create a transport with its own driver from connection settings."""
        driver = AsyncGraphDatabase.driver(
            settings.uri,
            auth=(settings.user, settings.password),
            max_connection_pool_size=settings.max_connection_pool_size,
        )
        database = settings.database

        def session_config() -> Dict[str, Any]:
            return {"database": database} if database else {}

        logger.info(f"Created Neo4j driver for {settings.uri}")
        return cls(driver, session_config=session_config, owns_driver=True)

    @asynccontextmanager
    async def consistent_read(self) -> AsyncIterator[ChangeRead]:
        config = {"default_access_mode": READ_ACCESS, **self._session_config()}
        session = self._driver.session(**config)
        try:
            try:
                tx = await session.begin_transaction()
            except (Neo4jError, DriverError) as e:
                raise ConnectivityError(f"Failed to open read transaction: {e}") from e

            try:
                yield Neo4jChangeRead(tx)
            finally:
                # read-only; closing without commit rolls back
                await tx.close()
        finally:
            await session.close()

    async def close(self) -> None:
        if self._owns_driver:
            await self._driver.close()
            logger.info("Closed Neo4j driver")
