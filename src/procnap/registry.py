"""Tracked entity registry and visibility capability."""

import logging
from typing import Protocol

from procnap.models import TrackedEntity

logger = logging.getLogger(__name__)


class UnknownEntityError(KeyError):
    """Raised when an entity id is not tracked."""


class VisibilitySource(Protocol):
    """Optional external lookup of entity visibility."""

    @property
    def available(self) -> bool:
        """Check if the lookup can answer at all."""
        ...

    def is_visible(self, entity_id: str) -> bool | None:
        """Report whether the entity is on screen, or None if unknown."""
        ...


class UnavailableVisibilitySource:
    """Visibility source used when no external lookup exists."""

    @property
    def available(self) -> bool:
        """Always False."""
        return False

    def is_visible(self, entity_id: str) -> bool | None:
        """Never knows; the stored flag is used."""
        return None


class EntityRegistry:
    """
    Holds the entities whose processes are managed.

    Records are replaced, never mutated, so list_tracked_entities() hands out
    a stable snapshot. Unregistered entities are remembered until the next
    drain_departed() call so a cycle can resume what they left behind.
    """

    def __init__(self, visibility: VisibilitySource | None = None) -> None:
        """
        Initialize the EntityRegistry.

        Args:
            visibility: External visibility lookup. Only kept when available.
        """
        if visibility is not None and not visibility.available:
            visibility = None
        self._visibility: VisibilitySource = visibility or UnavailableVisibilitySource()
        self._entities: dict[str, TrackedEntity] = {}
        self._departed: list[TrackedEntity] = []

    @property
    def visibility(self) -> VisibilitySource:
        """Get the resolved visibility source."""
        return self._visibility

    def __len__(self) -> int:
        """Count tracked entities."""
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        """Check if an entity id is tracked."""
        return entity_id in self._entities

    def register(
        self, entity_id: str, process_id: int | None = None, visible: bool = False
    ) -> TrackedEntity:
        """Start tracking an entity, replacing any record with the same id."""
        entity = TrackedEntity(entity_id=entity_id, process_id=process_id, visible=visible)
        self._entities[entity_id] = entity
        logger.debug("Registered %s (pid=%s, visible=%s)", entity_id, process_id, visible)
        return entity

    def unregister(self, entity_id: str) -> TrackedEntity:
        """Stop tracking an entity and queue it as departed."""
        try:
            entity = self._entities.pop(entity_id)
        except KeyError:
            raise UnknownEntityError(entity_id) from None
        self._departed.append(entity)
        logger.debug("Unregistered %s", entity_id)
        return entity

    def is_empty(self) -> bool:
        """Check if no entity is tracked."""
        return not self._entities

    def get(self, entity_id: str) -> TrackedEntity:
        """Get the current record of an entity."""
        try:
            return self._entities[entity_id]
        except KeyError:
            raise UnknownEntityError(entity_id) from None

    def set_visible(self, entity_id: str, visible: bool) -> TrackedEntity:
        """Record a visibility change."""
        entity = self.get(entity_id)
        return self.register(entity_id, entity.process_id, visible)

    def set_process(self, entity_id: str, process_id: int | None) -> TrackedEntity:
        """Rebind an entity to another process."""
        entity = self.get(entity_id)
        return self.register(entity_id, process_id, entity.visible)

    def list_tracked_entities(self) -> list[TrackedEntity]:
        """Snapshot the tracked entities with resolved visibility."""
        entities = []
        for entity in self._entities.values():
            visible = self._visibility.is_visible(entity.entity_id)
            if visible is not None and visible != entity.visible:
                entity = TrackedEntity(entity.entity_id, entity.process_id, visible)
            entities.append(entity)
        return entities

    def drain_departed(self) -> list[TrackedEntity]:
        """Return and forget the entities unregistered since the last drain."""
        departed, self._departed = self._departed, []
        return departed

    def requeue_departed(self, entities: list[TrackedEntity]) -> None:
        """Put drained entities back, ahead of newer departures."""
        self._departed[:0] = entities
