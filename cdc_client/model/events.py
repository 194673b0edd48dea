"""
Change Event Model.

Value types for the change feed: checkpoints, transaction metadata and the
node/relationship payloads carried by each change event.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union


class EntityOperation(str, Enum):
    """Entity operation types, valued by their wire shorthand."""
    CREATE = "c"
    UPDATE = "u"
    DELETE = "d"


class EventType(str, Enum):
    """Change event payload types."""
    NODE = "n"
    RELATIONSHIP = "r"


class CaptureMode(str, Enum):
    """Server-side capture modes."""
    OFF = "OFF"
    DIFF = "DIFF"
    FULL = "FULL"


@dataclass(frozen=True)
class ChangeIdentifier:
    """Opaque checkpoint token. Ordering is defined by the server."""
    id: str

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class Metadata:
    """Transaction metadata attached to a change event."""
    authenticated_user: Optional[str] = None
    executing_user: Optional[str] = None
    capture_mode: Optional[CaptureMode] = None
    connection_type: Optional[str] = None
    connection_client: Optional[str] = None
    connection_server: Optional[str] = None
    server_id: Optional[str] = None
    tx_start_time: Optional[datetime] = None
    tx_commit_time: Optional[datetime] = None
    tx_metadata: Dict[str, Any] = field(default_factory=dict)
    additional_entries: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authenticatedUser": self.authenticated_user,
            "executingUser": self.executing_user,
            "captureMode": self.capture_mode.value if self.capture_mode else None,
            "connectionType": self.connection_type,
            "connectionClient": self.connection_client,
            "connectionServer": self.connection_server,
            "serverId": self.server_id,
            "txStartTime": self.tx_start_time.isoformat() if self.tx_start_time else None,
            "txCommitTime": self.tx_commit_time.isoformat() if self.tx_commit_time else None,
            "txMetadata": dict(self.tx_metadata),
            **self.additional_entries,
        }


@dataclass(frozen=True)
class NodeState:
    """Node state before or after a change."""
    labels: List[str] = field(default_factory=list)
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"labels": list(self.labels), "properties": dict(self.properties)}


@dataclass(frozen=True)
class RelationshipState:
    """Relationship state before or after a change."""
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"properties": dict(self.properties)}


@dataclass(frozen=True)
class Node:
    """Node reference held by a relationship event (start or end node)."""
    element_id: str
    labels: List[str] = field(default_factory=list)
    keys: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"elementId": self.element_id, "labels": list(self.labels), "keys": self.keys}


@dataclass(frozen=True)
class NodeEvent:
    """A change to a single node."""
    element_id: str
    operation: EntityOperation
    labels: List[str] = field(default_factory=list)
    keys: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    before: Optional[NodeState] = None
    after: Optional[NodeState] = None

    @property
    def event_type(self) -> EventType:
        return EventType.NODE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elementId": self.element_id,
            "eventType": self.event_type.value,
            "operation": self.operation.value,
            "labels": list(self.labels),
            "keys": self.keys,
            "state": {
                "before": self.before.to_dict() if self.before else None,
                "after": self.after.to_dict() if self.after else None,
            },
        }


@dataclass(frozen=True)
class RelationshipEvent:
    """A change to a single relationship."""
    element_id: str
    type: str
    operation: EntityOperation
    start: Node
    end: Node
    keys: List[Dict[str, Any]] = field(default_factory=list)
    before: Optional[RelationshipState] = None
    after: Optional[RelationshipState] = None

    @property
    def event_type(self) -> EventType:
        return EventType.RELATIONSHIP

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elementId": self.element_id,
            "eventType": self.event_type.value,
            "operation": self.operation.value,
            "type": self.type,
            "start": self.start.to_dict(),
            "end": self.end.to_dict(),
            "keys": self.keys,
            "state": {
                "before": self.before.to_dict() if self.before else None,
                "after": self.after.to_dict() if self.after else None,
            },
        }


EntityEvent = Union[NodeEvent, RelationshipEvent]


@dataclass(frozen=True)
class ChangeEvent:
    """Represents a single change event read from the feed."""
    id: ChangeIdentifier
    tx_id: int
    seq: int
    metadata: Metadata
    event: EntityEvent

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id.id,
            "txId": self.tx_id,
            "seq": self.seq,
            "metadata": self.metadata.to_dict(),
            "event": self.event.to_dict(),
        }
