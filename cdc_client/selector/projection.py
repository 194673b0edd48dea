"""
Property projection for change events.
"""

from dataclasses import replace
from typing import Any, Dict, Mapping, Optional, Sequence

from cdc_client.model.events import ChangeEvent
from cdc_client.selector.evaluator import matches
from cdc_client.selector.selectors import WILDCARD, EntitySelector


def project(selector: EntitySelector, properties: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Trim a property map according to a selector's projection settings.

    Included names win over everything else; ``*`` keeps all properties.
    Names that do not occur in ``properties`` are ignored.
    """
    included = selector.including_properties
    excluded = selector.excluding_properties

    if included:
        if WILDCARD in included:
            return dict(properties)
        return {k: v for k, v in properties.items() if k in included}

    if excluded:
        return {k: v for k, v in properties.items() if k not in excluded}

    return dict(properties)


def _project_state(selector: EntitySelector, state: Optional[Any]) -> Optional[Any]:
    if state is None:
        return None
    return replace(state, properties=project(selector, state.properties))


def apply_selector(selector: EntitySelector, event: ChangeEvent) -> ChangeEvent:
    """Return a copy of ``event`` with before/after properties projected."""
    entity = event.event
    projected = replace(
        entity,
        before=_project_state(selector, entity.before),
        after=_project_state(selector, entity.after),
    )
    return replace(event, event=projected)


def apply_governing_selector(
    selectors: Sequence[EntitySelector],
    event: ChangeEvent,
) -> ChangeEvent:
    """
    Project an event with the first selector that matches it.

    Events no selector matches pass through unchanged; the server has already
    excluded everything the selectors do not admit.
    """
    if not selectors:
        return event

    index = matches(selectors, event)
    if index is None:
        return event

    return apply_selector(selectors[index], event)
