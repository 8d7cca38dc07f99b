"""Turning tracked entities into a conflict-free signal plan."""

import logging
from collections.abc import Collection, Iterable

from procnap.models import Action, ProcessAttributes, SignalPlan, TrackedEntity
from procnap.relations import related_pids

logger = logging.getLogger(__name__)

Intent = tuple[int, Action]


def expand_entity(
    entity: TrackedEntity,
    snapshot: Collection[ProcessAttributes],
    action: Action | None = None,
) -> list[Intent]:
    """
    Pair every process related to the entity with its intended action.

    Args:
        entity: The tracked entity to expand.
        snapshot: Process table snapshot of the current cycle.
        action: Override for the visibility-derived action.
    """
    if entity.process_id is None:
        return []
    if action is None:
        action = Action.for_visibility(entity.visible)
    return [(pid, action) for pid in related_pids(entity.process_id, snapshot)]


def expand_entities(
    entities: Iterable[TrackedEntity],
    snapshot: Collection[ProcessAttributes],
    action: Action | None = None,
) -> list[Intent]:
    """Concatenate the expansions of several entities."""
    intents: list[Intent] = []
    for entity in entities:
        intents.extend(expand_entity(entity, snapshot, action))
    return intents


def plan(expansions: Iterable[Intent]) -> SignalPlan:
    """
    Reduce intents to one action per pid.

    Each intent is inserted, or upgrades the stored action via Action.merge,
    so the result does not depend on the order of expansions.
    """
    result: SignalPlan = {}
    for pid, action in expansions:
        stored = result.get(pid)
        result[pid] = action if stored is None else Action.merge(stored, action)
    return result


def merge_plans(*plans: SignalPlan) -> SignalPlan:
    """Fold several plans together with the same reduction as plan()."""
    return plan(intent for each in plans for intent in each.items())


def protect(signal_plan: SignalPlan, protected_pids: Collection[int]) -> SignalPlan:
    """Drop SUSPEND entries for pids that must keep running."""
    kept: SignalPlan = {}
    for pid, action in signal_plan.items():
        if action is Action.SUSPEND and pid in protected_pids:
            logger.debug("Not suspending protected pid %d", pid)
            continue
        kept[pid] = action
    return kept
