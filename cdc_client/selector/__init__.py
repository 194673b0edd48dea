"""
Change selectors: predicates over change events and property projection.
"""

from .evaluator import matches, selector_matches
from .projection import apply_governing_selector, apply_selector, project
from .selectors import (
    WILDCARD,
    EntitySelector,
    NodeSelector,
    RelationshipNodeSelector,
    RelationshipSelector,
    Selector,
    SelectorKind,
)

__all__ = [
    "WILDCARD",
    "EntitySelector",
    "NodeSelector",
    "RelationshipNodeSelector",
    "RelationshipSelector",
    "Selector",
    "SelectorKind",
    "matches",
    "selector_matches",
    "project",
    "apply_selector",
    "apply_governing_selector",
]
