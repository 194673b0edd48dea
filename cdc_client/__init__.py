"""
Graph CDC Client.

Consumer library for the change data capture feed of a graph database:
- One-shot change queries since a checkpoint
- Polling streams with a private, monotonically advancing cursor
- Node, relationship and entity selectors with property projection
"""

from cdc_client.client import CDCClient, ChangeStream, StreamState
from cdc_client.errors import (
    CDCError,
    ConfigurationError,
    ConnectivityError,
    MappingError,
)
from cdc_client.model import (
    CaptureMode,
    ChangeEvent,
    ChangeIdentifier,
    EntityOperation,
    EventType,
    Metadata,
    Node,
    NodeEvent,
    NodeState,
    RelationshipEvent,
    RelationshipState,
    ResultMapper,
)
from cdc_client.selector import (
    EntitySelector,
    NodeSelector,
    RelationshipNodeSelector,
    RelationshipSelector,
    apply_governing_selector,
    matches,
    project,
)
from cdc_client.transport import CDCTransport, ChangeRead, Neo4jTransport

__all__ = [
    # Client
    "CDCClient",
    "ChangeStream",
    "StreamState",
    # Errors
    "CDCError",
    "ConfigurationError",
    "ConnectivityError",
    "MappingError",
    # Model
    "CaptureMode",
    "ChangeEvent",
    "ChangeIdentifier",
    "EntityOperation",
    "EventType",
    "Metadata",
    "Node",
    "NodeEvent",
    "NodeState",
    "RelationshipEvent",
    "RelationshipState",
    "ResultMapper",
    # Selectors
    "EntitySelector",
    "NodeSelector",
    "RelationshipNodeSelector",
    "RelationshipSelector",
    "apply_governing_selector",
    "matches",
    "project",
    # Transports
    "CDCTransport",
    "ChangeRead",
    "Neo4jTransport",
]
