"""
Event classifiers - the only place event metadata is interpreted.

A classifier maps an EventRecord to Interaction.VIEW, Interaction.CLICK
or None (discard). Aggregation code never reads metadata directly.

unit_action_click is a click only when its action type is in the
configured click action types (default: whatsapp), in every view.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from .models import ActionType, EventRecord, EventType, Interaction, UnitAction

Classifier = Callable[[EventRecord], Interaction | None]

DEFAULT_CLICK_ACTIONS = frozenset({ActionType.WHATSAPP.value})


def parse_unit_action(event: EventRecord) -> UnitAction | None:
    """Typed view of a unit_action_click; None for any other event."""
    if event.event_type != EventType.UNIT_ACTION_CLICK.value:
        return None

    metadata: dict[str, Any] = event.metadata or {}
    raw = metadata.get("action_type")
    raw_action = raw if isinstance(raw, str) else None

    try:
        action = ActionType(raw_action) if raw_action else None
    except ValueError:
        action = None

    return UnitAction(unit_id=event.entity_id, action_type=action, raw_action_type=raw_action)


def is_counted_unit_action(
    event: EventRecord,
    click_actions: Iterable[str] = DEFAULT_CLICK_ACTIONS,
) -> bool:
    action = parse_unit_action(event)
    return action is not None and action.raw_action_type in frozenset(click_actions)


def is_whatsapp_action(event: EventRecord) -> bool:
    action = parse_unit_action(event)
    return action is not None and action.action_type == ActionType.WHATSAPP


def dashboard_classifier(
    click_actions: Iterable[str] = DEFAULT_CLICK_ACTIONS,
) -> Classifier:
    """Page views are views; unit clicks and counted unit actions are clicks."""
    actions = frozenset(click_actions)

    def classify(event: EventRecord) -> Interaction | None:
        if event.event_type == EventType.PAGE_VIEW.value:
            return Interaction.VIEW
        if event.event_type == EventType.UNIT_CLICK.value:
            return Interaction.CLICK
        if is_counted_unit_action(event, actions):
            return Interaction.CLICK
        return None

    return classify


def traffic_classifier(event: EventRecord) -> Interaction | None:
    """Only page views count."""
    if event.event_type == EventType.PAGE_VIEW.value:
        return Interaction.VIEW
    return None


def product_classifier(event: EventRecord) -> Interaction | None:
    """Product views and unit clicks attributed to a product."""
    if event.entity_type != "product":
        return None
    if event.event_type == EventType.PRODUCT_VIEW.value:
        return Interaction.VIEW
    if event.event_type == EventType.UNIT_CLICK.value:
        return Interaction.CLICK
    return None


def unit_classifier(
    click_actions: Iterable[str] = DEFAULT_CLICK_ACTIONS,
) -> Classifier:
    """Views and clicks attributed to a store unit."""
    actions = frozenset(click_actions)

    def classify(event: EventRecord) -> Interaction | None:
        if event.entity_type != "unit":
            return None
        if event.event_type == EventType.PAGE_VIEW.value:
            return Interaction.VIEW
        if event.event_type == EventType.UNIT_CLICK.value:
            return Interaction.CLICK
        if is_counted_unit_action(event, actions):
            return Interaction.CLICK
        return None

    return classify


def slide_classifier(event: EventRecord) -> Interaction | None:
    if event.entity_type != "slide":
        return None
    if event.event_type == EventType.SLIDE_VIEW.value:
        return Interaction.VIEW
    if event.event_type == EventType.SLIDE_CLICK.value:
        return Interaction.CLICK
    return None
