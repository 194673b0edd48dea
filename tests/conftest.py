"""
Shared fixtures for CDC client tests.

Provides an in-memory change feed transport and builders for node and
relationship change events.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pytest

from cdc_client.model.events import (
    CaptureMode,
    ChangeEvent,
    ChangeIdentifier,
    EntityOperation,
    Metadata,
    Node,
    NodeEvent,
    NodeState,
    RelationshipEvent,
    RelationshipState,
)
from cdc_client.transport.base import CDCTransport, ChangeRead


class FakeChangeRead(ChangeRead):
    """One read against the fake feed; consumes a single scripted cycle."""

    def __init__(self, transport: "FakeTransport"):
        self._transport = transport
        self._cycle = None

    def _current_cycle(self):
        if self._cycle is None:
            self._cycle = self._transport.next_cycle()
        return self._cycle

    async def earliest_id(self) -> ChangeIdentifier:
        return self._transport.earliest

    async def current_id(self) -> ChangeIdentifier:
        current, _ = self._current_cycle()
        return current

    async def changes_since(self, cursor, selectors) -> List[ChangeEvent]:
        self._transport.queries.append((cursor, list(selectors)))
        _, events = self._current_cycle()
        if self._transport.block_queries:
            await asyncio.Event().wait()
        return list(events)


class FakeTransport(CDCTransport):
    """
    Scripted change feed.

    Each cycle is either ``(current_id, [events])`` or an exception to raise
    when the read is used. Once the script runs out, reads report the last
    current id and no changes.
    """

    def __init__(self, cycles: Optional[Iterable[Any]] = None, earliest: str = "A0"):
        self.cycles = list(cycles or [])
        self.earliest = ChangeIdentifier(earliest)
        self.last_current = ChangeIdentifier("C0")
        self.queries: List[Any] = []
        self.reads_opened = 0
        self.reads_closed = 0
        self.block_queries = False
        self.closed = False

    def next_cycle(self):
        if not self.cycles:
            return self.last_current, []
        cycle = self.cycles.pop(0)
        if isinstance(cycle, Exception):
            raise cycle
        current, events = cycle
        self.last_current = ChangeIdentifier(current)
        return self.last_current, events

    @property
    def open_reads(self) -> int:
        return self.reads_opened - self.reads_closed

    @asynccontextmanager
    async def consistent_read(self):
        self.reads_opened += 1
        try:
            yield FakeChangeRead(self)
        finally:
            self.reads_closed += 1

    async def close(self) -> None:
        self.closed = True


def _metadata(
    authenticated_user: str = "neo4j",
    executing_user: str = "neo4j",
    tx_metadata: Optional[Dict[str, Any]] = None,
) -> Metadata:
    return Metadata(
        authenticated_user=authenticated_user,
        executing_user=executing_user,
        capture_mode=CaptureMode.FULL,
        connection_type="bolt",
        connection_client="127.0.0.1:51000",
        connection_server="127.0.0.1:7687",
        server_id="server-1",
        tx_start_time=datetime(2024, 1, 1, 12, 0, 0),
        tx_commit_time=datetime(2024, 1, 1, 12, 0, 1),
        tx_metadata=tx_metadata or {},
    )


def _states(operation: EntityOperation, make_state, before_props, after_props):
    before = None if operation == EntityOperation.CREATE else make_state(before_props or {})
    after = None if operation == EntityOperation.DELETE else make_state(after_props or {})
    return before, after


def build_node_event(
    change_id: str = "A1",
    operation: EntityOperation = EntityOperation.CREATE,
    labels: Iterable[str] = ("Person",),
    keys: Optional[Dict[str, List[Dict[str, Any]]]] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    element_id: str = "4:node:1",
    tx_id: int = 1,
    seq: int = 0,
    **metadata,
) -> ChangeEvent:
    labels = list(labels)
    before_state, after_state = _states(
        operation, lambda props: NodeState(labels=list(labels), properties=dict(props)), before, after
    )
    return ChangeEvent(
        id=ChangeIdentifier(change_id),
        tx_id=tx_id,
        seq=seq,
        metadata=_metadata(**metadata),
        event=NodeEvent(
            element_id=element_id,
            operation=operation,
            labels=labels,
            keys=keys or {},
            before=before_state,
            after=after_state,
        ),
    )


def build_relationship_event(
    change_id: str = "A1",
    operation: EntityOperation = EntityOperation.CREATE,
    rel_type: str = "BORN_IN",
    start: Optional[Node] = None,
    end: Optional[Node] = None,
    keys: Optional[List[Dict[str, Any]]] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    element_id: str = "5:rel:1",
    tx_id: int = 1,
    seq: int = 0,
    **metadata,
) -> ChangeEvent:
    before_state, after_state = _states(
        operation, lambda props: RelationshipState(properties=dict(props)), before, after
    )
    return ChangeEvent(
        id=ChangeIdentifier(change_id),
        tx_id=tx_id,
        seq=seq,
        metadata=_metadata(**metadata),
        event=RelationshipEvent(
            element_id=element_id,
            type=rel_type,
            operation=operation,
            start=start or Node("4:node:1", ["Person"], {"Person": [{"id": 1}]}),
            end=end or Node("4:node:3", ["Place"], {"Place": [{"id": 48}]}),
            keys=keys or [],
            before=before_state,
            after=after_state,
        ),
    )


@pytest.fixture
def node_event():
    """Builder for node change events."""
    return build_node_event


@pytest.fixture
def relationship_event():
    """Builder for relationship change events."""
    return build_relationship_event


@pytest.fixture
def make_transport():
    """Factory for scripted in-memory transports."""
    return FakeTransport
