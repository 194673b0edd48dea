"""
Unit tests for the Neo4j driver transport.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from neo4j import READ_ACCESS
from neo4j.exceptions import ServiceUnavailable, SessionExpired

from cdc_client.config.settings import Neo4jSettings
from cdc_client.errors import ConnectivityError, MappingError
from cdc_client.model.events import ChangeIdentifier, NodeEvent
from cdc_client.transport.neo4j_transport import (
    CDC_CURRENT_STATEMENT,
    CDC_EARLIEST_STATEMENT,
    CDC_QUERY_STATEMENT,
    Neo4jTransport,
)


class FakeResult:
    """Async-iterable stand-in for a driver result."""

    def __init__(self, rows):
        self._records = [self._record(row) for row in rows]

    @staticmethod
    def _record(row):
        record = MagicMock()
        record.data.return_value = row
        return record

    async def single(self):
        return self._records[0] if self._records else None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in self._records:
            yield record


CHANGE_ROW = {
    "id": "A1",
    "txId": 3,
    "seq": 0,
    "metadata": {"authenticatedUser": "neo4j", "executingUser": "neo4j", "captureMode": "FULL"},
    "event": {
        "elementId": "4:node:3",
        "eventType": "n",
        "operation": "c",
        "labels": ["Place"],
        "keys": {},
        "state": {"before": None, "after": {"labels": ["Place"], "properties": {"id": 48}}},
    },
}


@pytest.fixture
def tx():
    """Mock read transaction."""
    tx = MagicMock()
    tx.run = AsyncMock()
    tx.close = AsyncMock()
    return tx


@pytest.fixture
def session(tx):
    """Mock session handing out the transaction."""
    session = MagicMock()
    session.begin_transaction = AsyncMock(return_value=tx)
    session.close = AsyncMock()
    return session


@pytest.fixture
def driver(session):
    """Mock async driver."""
    driver = MagicMock()
    driver.session.return_value = session
    driver.close = AsyncMock()
    return driver


class TestNeo4jTransport:
    """Tests for Neo4jTransport reads."""

    @pytest.mark.asyncio
    async def test_current_id(self, driver, tx):
        """Test cdc.current() is mapped to a change identifier."""
        tx.run.return_value = FakeResult([{"id": "CUR"}])
        transport = Neo4jTransport(driver)

        async with transport.consistent_read() as read:
            current = await read.current_id()

        assert current == ChangeIdentifier("CUR")
        tx.run.assert_awaited_once_with(CDC_CURRENT_STATEMENT)

    @pytest.mark.asyncio
    async def test_earliest_id(self, driver, tx):
        """Test cdc.earliest() is mapped to a change identifier."""
        tx.run.return_value = FakeResult([{"id": "EARLY"}])

        async with Neo4jTransport(driver).consistent_read() as read:
            earliest = await read.earliest_id()

        assert earliest == ChangeIdentifier("EARLY")
        tx.run.assert_awaited_once_with(CDC_EARLIEST_STATEMENT)

    @pytest.mark.asyncio
    async def test_empty_identifier_result(self, driver, tx):
        """Test a missing identifier record is a mapping error."""
        tx.run.return_value = FakeResult([])

        with pytest.raises(MappingError):
            async with Neo4jTransport(driver).consistent_read() as read:
                await read.current_id()

    @pytest.mark.asyncio
    async def test_changes_since(self, driver, tx):
        """Test cdc.query parameters and record mapping."""
        tx.run.return_value = FakeResult([CHANGE_ROW])
        wire = [{"select": "n", "labels": ["Place"]}]

        async with Neo4jTransport(driver).consistent_read() as read:
            changes = await read.changes_since(ChangeIdentifier("A0"), wire)

        tx.run.assert_awaited_once_with(CDC_QUERY_STATEMENT, {"from": "A0", "selectors": wire})
        assert len(changes) == 1
        assert changes[0].id == ChangeIdentifier("A1")
        assert isinstance(changes[0].event, NodeEvent)

    @pytest.mark.asyncio
    async def test_read_uses_one_transaction(self, driver, session, tx):
        """Test current id and changes come from the same transaction."""
        tx.run.side_effect = [FakeResult([{"id": "CUR"}]), FakeResult([])]

        async with Neo4jTransport(driver).consistent_read() as read:
            await read.current_id()
            await read.changes_since(ChangeIdentifier("A0"), [])

        session.begin_transaction.assert_awaited_once()
        assert tx.run.await_count == 2
        tx.close.assert_awaited_once()
        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_session_config(self, driver):
        """Test session options from the supplier are applied in read mode."""
        transport = Neo4jTransport(driver, session_config=lambda: {"database": "movies"})

        async with transport.consistent_read():
            pass

        driver.session.assert_called_once_with(default_access_mode=READ_ACCESS, database="movies")

    @pytest.mark.asyncio
    async def test_driver_errors_become_connectivity_errors(self, driver, session, tx):
        """Test driver failures are wrapped and resources released."""
        tx.run.side_effect = ServiceUnavailable("connection refused")

        with pytest.raises(ConnectivityError) as exc_info:
            async with Neo4jTransport(driver).consistent_read() as read:
                await read.changes_since(ChangeIdentifier("A0"), [])

        assert isinstance(exc_info.value.__cause__, ServiceUnavailable)
        tx.close.assert_awaited_once()
        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_begin_transaction_failure(self, driver, session):
        """Test failures opening the transaction are wrapped."""
        session.begin_transaction.side_effect = SessionExpired("expired")

        with pytest.raises(ConnectivityError):
            async with Neo4jTransport(driver).consistent_read():
                pass

        session.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_body_errors_propagate_unchanged(self, driver, tx):
        """Test errors raised by the caller are not rewrapped."""
        with pytest.raises(KeyError):
            async with Neo4jTransport(driver).consistent_read():
                raise KeyError("boom")

        tx.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_owned_driver(self, driver):
        """Test only owned drivers are closed."""
        await Neo4jTransport(driver).close()
        driver.close.assert_not_awaited()

        await Neo4jTransport(driver, owns_driver=True).close()
        driver.close.assert_awaited_once()

    def test_driver_required(self):
        """Test a driver must be given."""
        with pytest.raises(ValueError):
            Neo4jTransport(None)

    def test_from_settings(self, driver):
        """Test building the driver from settings."""
        settings = Neo4jSettings(
            uri="neo4j://db:7687",
            user="cdc",
            password="secret",
            database="movies",
            max_connection_pool_size=5,
        )

        with patch(
            "cdc_client.transport.neo4j_transport.AsyncGraphDatabase.driver",
            return_value=driver,
        ) as create_driver:
            transport = Neo4jTransport.from_settings(settings)

        create_driver.assert_called_once_with(
            "neo4j://db:7687",
            auth=("cdc", "secret"),
            max_connection_pool_size=5,
        )
        assert transport._session_config() == {"database": "movies"}
        assert transport._owns_driver is True
