"""
Selector predicate evaluation.

The server already returns the union of all selector predicates. Client side
we only need to know which selector governs projection for each event: the
first one, in configuration order, whose predicate holds.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from cdc_client.model.events import (
    ChangeEvent,
    Node,
    NodeEvent,
    RelationshipEvent,
)
from cdc_client.selector.selectors import (
    EntitySelector,
    NodeSelector,
    RelationshipNodeSelector,
    RelationshipSelector,
    SelectorKind,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def _is_subset(expected: Mapping[str, Any], actual: Mapping[str, Any]) -> bool:
    return all(actual.get(k, _MISSING) == v for k, v in expected.items())


def _key_in(key: Mapping[str, Any], candidates: Iterable[Mapping[str, Any]]) -> bool:
    return any(dict(candidate) == dict(key) for candidate in candidates)


def _node_key_tuples(
    keys: Mapping[str, List[Mapping[str, Any]]],
    labels: Iterable[str] = (),
) -> List[Mapping[str, Any]]:
    # constrained labels only; all labels when none are configured
    if labels:
        return [key for label in labels for key in keys.get(label, ())]
    return [key for per_label in keys.values() for key in per_label]


def _changed_properties(event: ChangeEvent) -> Dict[str, bool]:
    before = event.event.before.properties if event.event.before else {}
    after = event.event.after.properties if event.event.after else {}
    names = set(before) | set(after)
    return {
        name: before.get(name, _MISSING) != after.get(name, _MISSING)
        for name in names
    }


def _matches_common(selector: EntitySelector, event: ChangeEvent) -> bool:
    entity = event.event
    metadata = event.metadata

    if selector.operation is not None and selector.operation != entity.operation:
        return False

    if selector.changes_to:
        changed = _changed_properties(event)
        if not all(changed.get(name, False) for name in selector.changes_to):
            return False

    if (
        selector.authenticated_user is not None
        and selector.authenticated_user != metadata.authenticated_user
    ):
        return False

    if (
        selector.executing_user is not None
        and selector.executing_user != metadata.executing_user
    ):
        return False

    if selector.tx_metadata and not _is_subset(selector.tx_metadata, metadata.tx_metadata or {}):
        return False

    return True


def _matches_entity(selector: EntitySelector, event: ChangeEvent) -> bool:
    return True


def _matches_node(selector: NodeSelector, event: ChangeEvent) -> bool:
    entity = event.event
    if not isinstance(entity, NodeEvent):
        return False

    if selector.labels and not selector.labels.issubset(entity.labels):
        return False

    if selector.key and not _key_in(selector.key, _node_key_tuples(entity.keys, selector.labels)):
        return False

    return True


def _matches_node_reference(selector: Optional[RelationshipNodeSelector], node: Node) -> bool:
    if selector is None:
        return True

    if selector.labels and not selector.labels.issubset(node.labels):
        return False

    if selector.key and not _key_in(selector.key, _node_key_tuples(node.keys, selector.labels)):
        return False

    return True


def _matches_relationship(selector: RelationshipSelector, event: ChangeEvent) -> bool:
    entity = event.event
    if not isinstance(entity, RelationshipEvent):
        return False

    if selector.type is not None and selector.type != entity.type:
        return False

    if not _matches_node_reference(selector.start, entity.start):
        return False

    if not _matches_node_reference(selector.end, entity.end):
        return False

    if selector.key and not _key_in(selector.key, entity.keys):
        return False

    return True


_TYPE_MATCHERS: Dict[SelectorKind, Callable[[Any, ChangeEvent], bool]] = {
    SelectorKind.ENTITY: _matches_entity,
    SelectorKind.NODE: _matches_node,
    SelectorKind.RELATIONSHIP: _matches_relationship,
}


def selector_matches(selector: EntitySelector, event: ChangeEvent) -> bool:
    """Check whether every constraint configured on ``selector`` holds for ``event``."""
    type_matcher = _TYPE_MATCHERS[selector.kind]
    return type_matcher(selector, event) and _matches_common(selector, event)


def matches(selectors: Sequence[EntitySelector], event: ChangeEvent) -> Optional[int]:
    """
    Find the governing selector for an event.

    Args:
        selectors: Selectors in configuration order
        event: Change event to evaluate

    Returns:
        Index of the first matching selector, or None when none matches
    """
    for index, selector in enumerate(selectors):
        if selector_matches(selector, event):
            logger.debug(f"Event {event.id} governed by selector #{index} ({selector.kind.value})")
            return index
    return None
