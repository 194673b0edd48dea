"""
Change feed value types and record mapping.
"""

from .events import (
    CaptureMode,
    ChangeEvent,
    ChangeIdentifier,
    EntityEvent,
    EntityOperation,
    EventType,
    Metadata,
    Node,
    NodeEvent,
    NodeState,
    RelationshipEvent,
    RelationshipState,
)
from .mapper import ResultMapper

__all__ = [
    "CaptureMode",
    "ChangeEvent",
    "ChangeIdentifier",
    "EntityEvent",
    "EntityOperation",
    "EventType",
    "Metadata",
    "Node",
    "NodeEvent",
    "NodeState",
    "RelationshipEvent",
    "RelationshipState",
    "ResultMapper",
]
