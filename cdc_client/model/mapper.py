"""
Result Mapper.

Maps raw change feed records (plain mappings as returned by the driver) into
typed ChangeIdentifier and ChangeEvent values.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List, Optional

from cdc_client.errors import MappingError
from cdc_client.model.events import (
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
)

_KNOWN_METADATA_KEYS = frozenset({
    "authenticatedUser",
    "executingUser",
    "captureMode",
    "connectionType",
    "connectionClient",
    "connectionServer",
    "serverId",
    "txStartTime",
    "txCommitTime",
    "txMetadata",
})


def _require(record: Mapping[str, Any], key: str, expected: type, context: str) -> Any:
    if key not in record or record[key] is None:
        raise MappingError(f"{context}: missing required field '{key}'")
    value = record[key]
    if not isinstance(value, expected):
        raise MappingError(
            f"{context}: field '{key}' should be {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _optional_map(record: Mapping[str, Any], key: str, context: str) -> Dict[str, Any]:
    value = record.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MappingError(f"{context}: field '{key}' should be a map")
    return dict(value)


def _to_datetime(value: Any) -> Optional[datetime]:
    # neo4j.time.DateTime exposes to_native()
    if value is None or isinstance(value, datetime):
        return value
    to_native = getattr(value, "to_native", None)
    if to_native is not None:
        return to_native()
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError as e:
            raise MappingError(f"invalid timestamp '{value}'") from e
    raise MappingError(f"unsupported timestamp type {type(value).__name__}")


def _key_list(value: Any, context: str) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(k, Mapping) for k in value):
        raise MappingError(f"{context}: keys should be a list of maps")
    return [dict(k) for k in value]


def _node_keys(value: Any, context: str) -> Dict[str, List[Dict[str, Any]]]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MappingError(f"{context}: node keys should be a map of label to key list")
    return {label: _key_list(keys, context) for label, keys in value.items()}


class ResultMapper:
    """Parses raw change feed records."""

    @staticmethod
    def parse_change_identifier(record: Mapping[str, Any]) -> ChangeIdentifier:
        if not isinstance(record, Mapping):
            raise MappingError("change identifier record should be a map")
        return ChangeIdentifier(_require(record, "id", str, "change identifier"))

    @staticmethod
    def parse_metadata(raw: Mapping[str, Any]) -> Metadata:
        context = "metadata"
        capture_mode = raw.get("captureMode")
        try:
            capture_mode = CaptureMode(capture_mode) if capture_mode is not None else None
        except ValueError as e:
            raise MappingError(f"{context}: unknown capture mode '{capture_mode}'") from e

        server_id = raw.get("serverId")
        return Metadata(
            authenticated_user=raw.get("authenticatedUser"),
            executing_user=raw.get("executingUser"),
            capture_mode=capture_mode,
            connection_type=raw.get("connectionType"),
            connection_client=raw.get("connectionClient"),
            connection_server=raw.get("connectionServer"),
            server_id=str(server_id) if server_id is not None else None,
            tx_start_time=_to_datetime(raw.get("txStartTime")),
            tx_commit_time=_to_datetime(raw.get("txCommitTime")),
            tx_metadata=_optional_map(raw, "txMetadata", context),
            additional_entries={
                k: v for k, v in raw.items() if k not in _KNOWN_METADATA_KEYS
            },
        )

    @staticmethod
    def _parse_operation(raw: Mapping[str, Any], context: str) -> EntityOperation:
        value = _require(raw, "operation", str, context)
        try:
            return EntityOperation(value)
        except ValueError as e:
            raise MappingError(f"{context}: unknown operation '{value}'") from e

    @staticmethod
    def _check_states(operation: EntityOperation, before: Any, after: Any, context: str) -> None:
        if (before is None) != (operation == EntityOperation.CREATE):
            raise MappingError(f"{context}: 'before' must be absent iff operation is CREATE")
        if (after is None) != (operation == EntityOperation.DELETE):
            raise MappingError(f"{context}: 'after' must be absent iff operation is DELETE")

    @classmethod
    def parse_node_event(cls, raw: Mapping[str, Any]) -> NodeEvent:
        context = "node event"
        operation = cls._parse_operation(raw, context)
        state = _optional_map(raw, "state", context)

        def node_state(value: Any) -> Optional[NodeState]:
            if value is None:
                return None
            if not isinstance(value, Mapping):
                raise MappingError(f"{context}: state should be a map")
            return NodeState(
                labels=list(value.get("labels") or []),
                properties=_optional_map(value, "properties", context),
            )

        before = node_state(state.get("before"))
        after = node_state(state.get("after"))
        cls._check_states(operation, before, after, context)

        return NodeEvent(
            element_id=_require(raw, "elementId", str, context),
            operation=operation,
            labels=list(raw.get("labels") or []),
            keys=_node_keys(raw.get("keys"), context),
            before=before,
            after=after,
        )

    @staticmethod
    def _parse_node_reference(raw: Any, context: str) -> Node:
        if not isinstance(raw, Mapping):
            raise MappingError(f"{context}: node reference should be a map")
        return Node(
            element_id=_require(raw, "elementId", str, context),
            labels=list(raw.get("labels") or []),
            keys=_node_keys(raw.get("keys"), context),
        )

    @classmethod
    def parse_relationship_event(cls, raw: Mapping[str, Any]) -> RelationshipEvent:
        context = "relationship event"
        operation = cls._parse_operation(raw, context)
        state = _optional_map(raw, "state", context)

        def relationship_state(value: Any) -> Optional[RelationshipState]:
            if value is None:
                return None
            if not isinstance(value, Mapping):
                raise MappingError(f"{context}: state should be a map")
            return RelationshipState(properties=_optional_map(value, "properties", context))

        before = relationship_state(state.get("before"))
        after = relationship_state(state.get("after"))
        cls._check_states(operation, before, after, context)

        return RelationshipEvent(
            element_id=_require(raw, "elementId", str, context),
            type=_require(raw, "type", str, context),
            operation=operation,
            start=cls._parse_node_reference(raw.get("start"), f"{context} start"),
            end=cls._parse_node_reference(raw.get("end"), f"{context} end"),
            keys=_key_list(raw.get("keys"), context),
            before=before,
            after=after,
        )

    @classmethod
    def parse_change_event(cls, record: Mapping[str, Any]) -> ChangeEvent:
        """
        Parse a record returned by the change query.

        Raises:
            MappingError: If the record is malformed
        """
        if not isinstance(record, Mapping):
            raise MappingError("change event record should be a map")

        context = "change event"
        raw_event = _require(record, "event", Mapping, context)
        event_type = raw_event.get("eventType")
        if event_type == EventType.NODE.value:
            event = cls.parse_node_event(raw_event)
        elif event_type == EventType.RELATIONSHIP.value:
            event = cls.parse_relationship_event(raw_event)
        else:
            raise MappingError(f"{context}: unknown event type '{event_type}'")

        tx_id = _require(record, "txId", int, context)
        seq = _require(record, "seq", int, context)

        return ChangeEvent(
            id=ChangeIdentifier(_require(record, "id", str, context)),
            tx_id=tx_id,
            seq=seq,
            metadata=cls.parse_metadata(_optional_map(record, "metadata", context)),
            event=event,
        )
