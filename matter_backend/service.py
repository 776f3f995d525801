"""
Matter Service

RESPONSIBILITY: CRUD rules and the per-matter state machine
ALLOWED INPUTS: Raw ids, names and state values from the API layer
OUTPUTS: Matter records, history and count summaries

STATE MACHINE:
==============
    gaseous <-> liquid
    gaseous  -> solid
    liquid   -> solid
    solid    (terminal: no update, no delete)

A matter entering the solid state is written to the store first and
then appended to the solid mirror file. The two writes are not
transactional; reconciliation treats the mirror file as authoritative.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

from .contracts.base import (
    Matter, MatterState, Timestamp,
    MatterNotFoundError, InvalidTransitionError,
    validate_id,
)
from .storage import MatterStore
from .storage.solid_mirror import SolidMirrorFile

logger = logging.getLogger(__name__)


class MatterService:
    """Operations exposed over HTTP, independent of the transport."""

    def __init__(self, store: MatterStore, mirror: SolidMirrorFile):
        self._store = store
        self._mirror = mirror

    def _require(self, matter_id: int) -> Matter:
        validate_id(matter_id)
        matter = self._store.get(matter_id)
        if matter is None:
            raise MatterNotFoundError()
        return matter

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def create_matter(self, matter_id: Any, name: Any) -> Matter:
        """Create a gaseous matter with an empty history."""
        matter = Matter(id=matter_id, name=name)
        return self._store.insert(matter)

    def update_state(self, matter_id: int, state: Any) -> Matter:
        """
        Move a matter to `state`.

        Checks run in order: existence, solid guard, state value.
        """
        matter = self._require(matter_id)

        if matter.is_solid:
            raise InvalidTransitionError("Cannot update state of a solid matter")

        new_state = MatterState.parse(state)
        updated = self._store.replace(matter.with_state(new_state, Timestamp.now()))

        if new_state is MatterState.SOLID:
            self._mirror.append(updated.to_document())
            logger.info("Matter %s is now solid; mirrored to %s", updated.id, self._mirror.path)

        return updated

    def delete_matter(self, matter_id: int) -> Matter:
        matter = self._require(matter_id)

        if matter.is_solid:
            raise InvalidTransitionError("Cannot delete a solid matter")

        self._store.delete(matter_id)
        return matter

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_matter(self, matter_id: int) -> Matter:
        return self._require(matter_id)

    def list_matters(self, state: Optional[str] = None) -> List[Matter]:
        """
        All matters, or those in `state`.

        An unknown state value matches nothing rather than failing.
        """
        if not state:
            return self._store.find()
        try:
            wanted = MatterState(state)
        except ValueError:
            return []
        return self._store.find(wanted)

    def count_matters(self) -> Dict[str, Any]:
        return {
            "total": self._store.count(),
            "states": self._store.count_by_state(),
        }

    def get_history(self, matter_id: int) -> Dict[str, Any]:
        matter = self._require(matter_id)
        return {
            "id": matter.id,
            "name": matter.name,
            "stateHistory": [e.to_document() for e in matter.state_history],
        }
