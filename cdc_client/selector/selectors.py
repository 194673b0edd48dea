"""
Change Selectors.

Selectors declare which change events a client is interested in and how the
property maps of matching events are trimmed. They are sent to the server as
wire predicates (see ``as_map``) and re-evaluated client side to pick the
selector that governs projection.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, Mapping, Optional, Union

from cdc_client.errors import ConfigurationError
from cdc_client.model.events import EntityOperation

WILDCARD = "*"

METADATA_KEY_AUTHENTICATED_USER = "authenticatedUser"
METADATA_KEY_EXECUTING_USER = "executingUser"
METADATA_KEY_TX_METADATA = "txMetadata"


class SelectorKind(str, Enum):
    """Selector variant tag, valued by the wire ``select`` field."""
    ENTITY = "e"
    NODE = "n"
    RELATIONSHIP = "r"


def _names(value: Optional[Iterable[str]], field_name: str) -> FrozenSet[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        # a bare string would otherwise be split into characters
        return frozenset({value})
    names = frozenset(value)
    for name in names:
        if not isinstance(name, str):
            raise ConfigurationError(f"{field_name} must contain strings, got {name!r}")
    return names


def _frozen_map(value: Optional[Mapping[str, Any]], field_name: str) -> Mapping[str, Any]:
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{field_name} must be a mapping")
    return MappingProxyType(dict(value))


def _operation(value: Union[EntityOperation, str, None]) -> Optional[EntityOperation]:
    if value is None or isinstance(value, EntityOperation):
        return value
    try:
        return EntityOperation(value)
    except ValueError:
        try:
            return EntityOperation[str(value).upper()]
        except KeyError as e:
            raise ConfigurationError(f"Unknown operation: {value!r}") from e


@dataclass(frozen=True)
class EntitySelector:
    """
    Selector matching both node and relationship changes.

    Attributes:
        operation: Only changes of this operation
        changes_to: Property names that must all have changed
        authenticated_user: Exact authenticated user of the transaction
        executing_user: Exact executing user of the transaction
        tx_metadata: Entries that must all appear in the transaction metadata
        including_properties: Property names to keep (``*`` keeps all)
        excluding_properties: Property names to drop
    """
    kind: ClassVar[SelectorKind] = SelectorKind.ENTITY

    operation: Optional[EntityOperation] = None
    changes_to: FrozenSet[str] = frozenset()
    authenticated_user: Optional[str] = None
    executing_user: Optional[str] = None
    tx_metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)
    including_properties: FrozenSet[str] = frozenset()
    excluding_properties: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "operation", _operation(self.operation))
        object.__setattr__(self, "changes_to", _names(self.changes_to, "changes_to"))
        object.__setattr__(self, "tx_metadata", _frozen_map(self.tx_metadata, "tx_metadata"))
        object.__setattr__(
            self, "including_properties", _names(self.including_properties, "including_properties")
        )
        object.__setattr__(
            self, "excluding_properties", _names(self.excluding_properties, "excluding_properties")
        )

        if self.including_properties and self.excluding_properties:
            raise ConfigurationError(
                "including_properties and excluding_properties cannot both be set"
            )

    def as_map(self) -> Dict[str, Any]:
        """Encode as the wire predicate consumed by the server-side filter."""
        result: Dict[str, Any] = {"select": self.kind.value}

        if self.operation is not None:
            result["operation"] = self.operation.value
        if self.changes_to:
            result["changesTo"] = sorted(self.changes_to)

        metadata: Dict[str, Any] = {}
        if self.authenticated_user is not None:
            metadata[METADATA_KEY_AUTHENTICATED_USER] = self.authenticated_user
        if self.executing_user is not None:
            metadata[METADATA_KEY_EXECUTING_USER] = self.executing_user
        if self.tx_metadata:
            metadata[METADATA_KEY_TX_METADATA] = dict(self.tx_metadata)
        if metadata:
            result["metadata"] = metadata

        return result


@dataclass(frozen=True)
class NodeSelector(EntitySelector):
    """Selector matching node changes by labels and key."""
    kind: ClassVar[SelectorKind] = SelectorKind.NODE

    labels: FrozenSet[str] = frozenset()
    key: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "labels", _names(self.labels, "labels"))
        object.__setattr__(self, "key", _frozen_map(self.key, "key"))

    def as_map(self) -> Dict[str, Any]:
        result = super().as_map()
        if self.labels:
            result["labels"] = sorted(self.labels)
        if self.key:
            result["key"] = dict(self.key)
        return result


@dataclass(frozen=True)
class RelationshipNodeSelector:
    """Constraint on the start or end node of a relationship."""
    labels: FrozenSet[str] = frozenset()
    key: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "labels", _names(self.labels, "labels"))
        object.__setattr__(self, "key", _frozen_map(self.key, "key"))

    def as_map(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        if self.labels:
            result["labels"] = sorted(self.labels)
        if self.key:
            result["key"] = dict(self.key)
        return result


@dataclass(frozen=True)
class RelationshipSelector(EntitySelector):
    """Selector matching relationship changes by type, key and endpoints."""
    kind: ClassVar[SelectorKind] = SelectorKind.RELATIONSHIP

    type: Optional[str] = None
    start: Optional[RelationshipNodeSelector] = None
    end: Optional[RelationshipNodeSelector] = None
    key: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "key", _frozen_map(self.key, "key"))
        for name in ("start", "end"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, RelationshipNodeSelector):
                raise ConfigurationError(f"{name} must be a RelationshipNodeSelector")

    def as_map(self) -> Dict[str, Any]:
        result = super().as_map()
        if self.type is not None:
            result["type"] = self.type
        if self.start is not None:
            result["start"] = self.start.as_map()
        if self.end is not None:
            result["end"] = self.end.as_map()
        if self.key:
            result["key"] = dict(self.key)
        return result


Selector = Union[EntitySelector, NodeSelector, RelationshipSelector]
