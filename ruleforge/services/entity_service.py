"""
Entity roster collaborator used by the add-entity / remove-entity effects.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class EntityService(Protocol):
    """
    Rosters are addressed by the effect target (e.g. 'gameState.party').
    Methods may be sync or async and return False when nothing changed.
    """

    def add_to_roster(self, roster: str, entity_id: str) -> Any: ...

    def remove_from_roster(self, roster: str, entity_id: str) -> Any: ...


class InMemoryEntityService:
    """Keeps entities in a dict and rosters as ordered lists without duplicates."""

    def __init__(self):
        self._entities: Dict[str, Dict[str, Any]] = {}
        self._rosters: Dict[str, List[str]] = {}

    # =========================================================================
    # ENTITIES
    # =========================================================================

    async def create_entity(self, entity_id: str, entity_type: str, data: Optional[Dict[str, Any]] = None):
        self._entities[entity_id] = {"id": entity_id, "type": entity_type, **(data or {})}
        logger.debug(f"Created entity {entity_id} ({entity_type})")

    async def get_entity(self, entity_id: str) -> Optional[Dict[str, Any]]:
        return self._entities.get(entity_id)

    async def entity_exists(self, entity_id: str) -> bool:
        return entity_id in self._entities

    async def get_entity_ids_by_type(self, entity_type: str) -> List[str]:
        return [eid for eid, data in self._entities.items() if data.get("type") == entity_type]

    async def delete_entity(self, entity_id: str) -> bool:
        if self._entities.pop(entity_id, None) is None:
            return False
        for members in self._rosters.values():
            if entity_id in members:
                members.remove(entity_id)
        return True

    # =========================================================================
    # ROSTERS
    # =========================================================================

    async def add_to_roster(self, roster: str, entity_id: str) -> bool:
        members = self._rosters.setdefault(roster, [])
        if entity_id in members:
            return False
        members.append(entity_id)
        logger.debug(f"Added {entity_id} to roster {roster}")
        return True

    async def remove_from_roster(self, roster: str, entity_id: str) -> bool:
        members = self._rosters.get(roster, [])
        if entity_id not in members:
            return False
        members.remove(entity_id)
        logger.debug(f"Removed {entity_id} from roster {roster}")
        return True

    def roster(self, roster: str) -> List[str]:
        return list(self._rosters.get(roster, []))
