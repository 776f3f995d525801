"""
Matter Storage Layer

RESPONSIBILITY: Persist matter records keyed by their logical id
ALLOWED INPUTS: Matter records from the service layer
OUTPUTS: Matter records, counts

WHAT THIS LAYER MUST NOT DO:
============================
- Enforce the solid-immutability rule (service layer)
- Append state history (service layer)
- Touch the solid mirror file (see solid_mirror.py)

BOUNDARY ENFORCEMENT:
=====================
- Every method is keyed by the user-supplied integer id
- Store-internal identifiers (Mongo `_id`) never leave this layer
- Uniqueness of `id` is enforced here, at the store level
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import threading

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from ..contracts.base import Matter, MatterState, DuplicateMatterError
from .solid_mirror import SolidMirrorFile

logger = logging.getLogger(__name__)

__all__ = [
    "MatterStore",
    "InMemoryMatterStore",
    "MongoMatterStore",
    "MatterStorageConfig",
    "SolidMirrorFile",
    "create_store",
]


def _duplicate_message(matter_id: int) -> str:
    return f"E11000 duplicate key error: id {matter_id} already exists"


# =============================================================================
# STORAGE INTERFACE (Dependency Inversion)
# =============================================================================

class MatterStore:
    """
    Abstract matter store interface.

    Implementations can use different storage systems (memory, MongoDB)
    while keeping the same id-keyed semantics.
    """

    def insert(self, matter: Matter) -> Matter:
        """Insert a new record. Raises DuplicateMatterError on id collision."""
        raise NotImplementedError

    def get(self, matter_id: int) -> Optional[Matter]:
        raise NotImplementedError

    def replace(self, matter: Matter) -> Matter:
        """Overwrite the stored record carrying `matter.id`."""
        raise NotImplementedError

    def delete(self, matter_id: int) -> bool:
        raise NotImplementedError

    def find(self, state: Optional[MatterState] = None) -> List[Matter]:
        """All records, or only those in `state`."""
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError

    def count_by_state(self) -> List[Dict[str, Any]]:
        """Groups shaped as `{"_id": state, "count": n}`."""
        raise NotImplementedError

    def delete_non_solid(self) -> int:
        """Remove every record that is not solid. Returns how many."""
        raise NotImplementedError

    def exists(self, matter_id: int) -> bool:
        return self.get(matter_id) is not None

    def close(self):
        """Release any underlying connection."""


# =============================================================================
# IN-MEMORY STORE (Reference Implementation)
# =============================================================================

class InMemoryMatterStore(MatterStore):
    """
    In-memory implementation of the matter store.

    The lock guards the dict for the duration of a single call only;
    read-modify-write sequences spanning calls are not serialized.
    Suitable for testing and local runs.
    """

    def __init__(self):
        self._records: Dict[int, Matter] = {}
        self._lock = threading.Lock()

    def insert(self, matter: Matter) -> Matter:
        with self._lock:
            if matter.id in self._records:
                raise DuplicateMatterError(_duplicate_message(matter.id))
            self._records[matter.id] = matter
        return matter

    def get(self, matter_id: int) -> Optional[Matter]:
        with self._lock:
            return self._records.get(matter_id)

    def replace(self, matter: Matter) -> Matter:
        with self._lock:
            self._records[matter.id] = matter
        return matter

    def delete(self, matter_id: int) -> bool:
        with self._lock:
            return self._records.pop(matter_id, None) is not None

    def find(self, state: Optional[MatterState] = None) -> List[Matter]:
        with self._lock:
            records = list(self._records.values())
        if state is not None:
            records = [m for m in records if m.state is state]
        return records

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def count_by_state(self) -> List[Dict[str, Any]]:
        counts: Dict[str, int] = {}
        for matter in self.find():
            counts[matter.state.value] = counts.get(matter.state.value, 0) + 1
        return [{"_id": state, "count": n} for state, n in counts.items()]

    def delete_non_solid(self) -> int:
        with self._lock:
            doomed = [k for k, m in self._records.items() if not m.is_solid]
            for key in doomed:
                del self._records[key]
        return len(doomed)


# =============================================================================
# MONGODB STORE
# =============================================================================

def _to_mongo(matter: Matter) -> Dict[str, Any]:
    """Snapshot document with native datetimes for BSON."""
    doc = matter.to_document()
    doc["createdAt"] = matter.created_at.value
    doc["stateHistory"] = [
        {"state": e.state.value, "updatedAt": e.updated_at.value}
        for e in matter.state_history
    ]
    return doc


# Projection hiding the store-internal key
_PUBLIC_FIELDS = {"_id": 0}


class MongoMatterStore(MatterStore):
    """
    MongoDB implementation backed by a single collection.

    A unique index on `id` enforces uniqueness; documents use the same
    field names as the wire representation.
    """

    def __init__(self, collection: Collection, client: Optional[MongoClient] = None):
        self._collection = collection
        self._client = client
        self._collection.create_index([("id", ASCENDING)], unique=True)

    @classmethod
    def from_config(cls, config: MatterStorageConfig) -> MongoMatterStore:
        client = MongoClient(
            config.mongo_uri,
            serverSelectionTimeoutMS=config.server_selection_timeout_ms,
        )
        database = client.get_default_database(config.database)
        logger.info(
            "Connected matter store to %s.%s", database.name, config.collection
        )
        return cls(database[config.collection], client=client)

    def insert(self, matter: Matter) -> Matter:
        try:
            self._collection.insert_one(_to_mongo(matter))
        except DuplicateKeyError:
            raise DuplicateMatterError(_duplicate_message(matter.id)) from None
        return matter

    def get(self, matter_id: int) -> Optional[Matter]:
        doc = self._collection.find_one({"id": matter_id}, _PUBLIC_FIELDS)
        return Matter.from_document(doc) if doc else None

    def replace(self, matter: Matter) -> Matter:
        self._collection.replace_one({"id": matter.id}, _to_mongo(matter))
        return matter

    def delete(self, matter_id: int) -> bool:
        return self._collection.delete_one({"id": matter_id}).deleted_count > 0

    def find(self, state: Optional[MatterState] = None) -> List[Matter]:
        query = {"state": state.value} if state is not None else {}
        return [
            Matter.from_document(doc)
            for doc in self._collection.find(query, _PUBLIC_FIELDS)
        ]

    def count(self) -> int:
        return self._collection.count_documents({})

    def count_by_state(self) -> List[Dict[str, Any]]:
        pipeline = [{"$group": {"_id": "$state", "count": {"$sum": 1}}}]
        return list(self._collection.aggregate(pipeline))

    def delete_non_solid(self) -> int:
        result = self._collection.delete_many(
            {"state": {"$ne": MatterState.SOLID.value}}
        )
        return result.deleted_count

    def exists(self, matter_id: int) -> bool:
        return self._collection.count_documents({"id": matter_id}, limit=1) > 0

    def close(self):
        if self._client is not None:
            self._client.close()


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class MatterStorageConfig:
    """Configuration for the matter store."""
    backend_type: str = "mongo"  # "mongo" or "memory"
    mongo_uri: str = "mongodb://localhost:27017/matterDB"
    database: str = "matterDB"  # used when the URI names no database
    collection: str = "matters"
    server_selection_timeout_ms: int = 5000


def create_store(config: Optional[MatterStorageConfig] = None) -> MatterStore:
    """Create a matter store based on configuration."""
    config = config or MatterStorageConfig()
    if config.backend_type == "memory":
        return InMemoryMatterStore()
    if config.backend_type == "mongo":
        return MongoMatterStore.from_config(config)
    raise ValueError(f"Unknown store backend: {config.backend_type!r}")
