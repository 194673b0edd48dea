"""
CDC Client.

Consumer facade over a change feed transport: checkpoint lookups, one-shot
change queries and polling streams, all post-processed by the configured
selectors.
"""

import logging
from typing import AsyncIterator, Optional, Tuple

from cdc_client.client.stream import ChangeStream
from cdc_client.config.settings import ClientConfig, Settings, get_settings
from cdc_client.model.events import ChangeEvent, ChangeIdentifier
from cdc_client.selector.projection import apply_governing_selector
from cdc_client.selector.selectors import EntitySelector
from cdc_client.transport.base import CDCTransport
from cdc_client.transport.neo4j_transport import Neo4jTransport

logger = logging.getLogger(__name__)


class CDCClient:
    """
    Client for the change data capture feed of a graph database.

    Selectors are fixed at construction and shared by every query and
    stream the client starts.

    Args:
        transport: Source of consistent reads
        *selectors: Selectors in priority order; the first matching one
            governs property projection
        poll_interval: Seconds between polls when streaming (overrides config)
        config: Client options
    """

    def __init__(
        self,
        transport: CDCTransport,
        *selectors: EntitySelector,
        poll_interval: Optional[float] = None,
        config: Optional[ClientConfig] = None,
    ):
        if transport is None:
            raise ValueError("transport is required")

        config = config or ClientConfig()
        if poll_interval is not None:
            config = ClientConfig.build(name=config.name, poll_interval=poll_interval)

        self._transport = transport
        self._selectors: Tuple[EntitySelector, ...] = tuple(selectors)
        self._wire_selectors = [s.as_map() for s in self._selectors]
        self.config = config

        logger.info(
            f"Initialized CDC client {config.name} with {len(self._selectors)} selector(s), "
            f"poll interval {config.poll_interval}s"
        )

    @classmethod
    def from_settings(
        cls,
        *selectors: EntitySelector,
        settings: Optional[Settings] = None,
    ) -> "CDCClient":
        """Create a client with a Neo4j transport built from environment settings."""
        settings = settings or get_settings()
        return cls(
            Neo4jTransport.from_settings(settings.neo4j),
            *selectors,
            config=ClientConfig.from_settings(settings),
        )

    @property
    def selectors(self) -> Tuple[EntitySelector, ...]:
        return self._selectors

    async def earliest(self) -> ChangeIdentifier:
        """Earliest change identifier available on the server."""
        try:
            async with self._transport.consistent_read() as read:
                change_id = await read.earliest_id()
        except Exception as e:
            logger.error(f"Query for earliest change identifier failed: {e}")
            raise
        logger.debug(f"Earliest change identifier is '{change_id}'")
        return change_id

    async def current(self) -> ChangeIdentifier:
        """Change identifier of the latest committed transaction."""
        try:
            async with self._transport.consistent_read() as read:
                change_id = await read.current_id()
        except Exception as e:
            logger.error(f"Query for current change identifier failed: {e}")
            raise
        logger.debug(f"Current change identifier is '{change_id}'")
        return change_id

    async def query(self, from_id: ChangeIdentifier) -> AsyncIterator[ChangeEvent]:
        """
        Changes after ``from_id``, projected by the governing selectors.

        Args:
            from_id: Exclusive lower bound

        Yields:
            ChangeEvent objects in server order
        """
        logger.debug(f"Querying changes since {from_id}")
        async with self._transport.consistent_read() as read:
            changes = await read.changes_since(from_id, self._wire_selectors)

        for change in changes:
            yield apply_governing_selector(self._selectors, change)

        logger.debug(f"Query since {from_id} completed with {len(changes)} change(s)")

    def stream(self, from_id: ChangeIdentifier) -> ChangeStream:
        """
        Poll for changes after ``from_id`` until cancelled.

        Every call returns an independent stream with its own cursor.
        """
        return ChangeStream(
            self._transport,
            self._selectors,
            from_id,
            poll_interval=self.config.poll_interval,
            name=self.config.name,
        )

    async def close(self) -> None:
        await self._transport.close()
