"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
Records here are IMMUTABLE and represent pure data: a state change
produces a new Matter rather than mutating the stored one.

BOUNDARY ENFORCEMENT:
=====================
- Layers may import types but MUST NOT modify this module
- Records are frozen dataclasses for immutability guarantee
- Conversion to and from plain documents happens only here
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple
from enum import Enum, auto


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    Every error state the service can produce is enumerated.
    """
    MATTER_NOT_FOUND = auto()
    INVALID_STATE_TRANSITION = auto()
    VALIDATION_FAILED = auto()
    DUPLICATE_ID = auto()
    STORE_FAILURE = auto()


class MatterError(Exception):
    """Base class for every error surfaced to API callers."""

    code: ErrorCode = ErrorCode.VALIDATION_FAILED
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class MatterNotFoundError(MatterError):
    code = ErrorCode.MATTER_NOT_FOUND
    status_code = 404

    def __init__(self, message: str = "Matter not found"):
        super().__init__(message)


class InvalidTransitionError(MatterError):
    """Raised when a solid matter would be updated or deleted."""
    code = ErrorCode.INVALID_STATE_TRANSITION


class MatterValidationError(MatterError):
    code = ErrorCode.VALIDATION_FAILED


class DuplicateMatterError(MatterValidationError):
    code = ErrorCode.DUPLICATE_ID


# =============================================================================
# STATE (Closed set of physical states)
# =============================================================================

class MatterState(Enum):
    """Physical state of a matter. SOLID is terminal."""
    GASEOUS = "gaseous"
    LIQUID = "liquid"
    SOLID = "solid"

    @staticmethod
    def parse(value: Any) -> MatterState:
        """Parse a raw state value, raising MatterValidationError if unknown."""
        if isinstance(value, MatterState):
            return value
        try:
            return MatterState(value)
        except ValueError:
            allowed = ", ".join(s.value for s in MatterState)
            raise MatterValidationError(
                f"'{value}' is not a valid state; expected one of {allowed}"
            ) from None

    @property
    def is_terminal(self) -> bool:
        return self is MatterState.SOLID


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Naive datetimes (e.g. from pymongo) are UTC
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return Timestamp(value=dt)

    @staticmethod
    def coerce(raw: Any) -> Timestamp:
        """Accept a Timestamp, a datetime or an ISO-8601 string."""
        if isinstance(raw, Timestamp):
            return raw
        if isinstance(raw, datetime):
            return Timestamp(value=raw)
        if isinstance(raw, str):
            try:
                return Timestamp.from_iso(raw)
            except ValueError:
                raise MatterValidationError(f"Invalid timestamp: {raw!r}") from None
        raise MatterValidationError(f"Invalid timestamp: {raw!r}")

    def to_iso(self) -> str:
        """ISO-8601 in UTC with millisecond precision and a Z suffix."""
        utc = self.value.astimezone(timezone.utc)
        return utc.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# =============================================================================
# MATTER RECORD
# =============================================================================

@dataclass(frozen=True)
class StateHistoryEntry:
    """One accepted state change."""
    state: MatterState
    updated_at: Timestamp

    def to_document(self) -> Dict[str, Any]:
        return {"state": self.state.value, "updatedAt": self.updated_at.to_iso()}

    @staticmethod
    def from_document(doc: Dict[str, Any]) -> StateHistoryEntry:
        if not isinstance(doc, dict):
            raise MatterValidationError("stateHistory entries must be objects")
        return StateHistoryEntry(
            state=MatterState.parse(doc.get("state")),
            updated_at=Timestamp.coerce(doc.get("updatedAt")),
        )


# Ids are stored as BSON int64
MAX_MATTER_ID = 2 ** 63 - 1
MIN_MATTER_ID = -(2 ** 63)


def validate_id(raw: Any) -> int:
    # bool is an int subclass but never a valid id
    if isinstance(raw, bool) or not isinstance(raw, int):
        if raw is None:
            raise MatterValidationError("Path `id` is required.")
        raise MatterValidationError(f"Invalid id: {raw!r} is not an integer")
    if not MIN_MATTER_ID <= raw <= MAX_MATTER_ID:
        raise MatterValidationError(f"Invalid id: {raw} is outside the 64-bit integer range")
    return raw


def _validate_name(raw: Any) -> str:
    if raw is None or raw == "":
        raise MatterValidationError("Path `name` is required.")
    if not isinstance(raw, str):
        raise MatterValidationError(f"Invalid name: {raw!r} is not a string")
    return raw


@dataclass(frozen=True)
class Matter:
    """
    A named item with a physical state and its transition history.

    `id` is the externally supplied logical identifier, never a
    store-internal key.
    """
    id: int
    name: str
    state: MatterState = MatterState.GASEOUS
    state_history: Tuple[StateHistoryEntry, ...] = field(default_factory=tuple)
    created_at: Timestamp = field(default_factory=Timestamp.now)

    def __post_init__(self):
        validate_id(self.id)
        _validate_name(self.name)

    @property
    def is_solid(self) -> bool:
        return self.state.is_terminal

    def with_state(self, state: MatterState, at: Optional[Timestamp] = None) -> Matter:
        """
        Return a copy in `state`.

        History is appended only when the state actually changes.
        """
        if state is self.state:
            return self
        entry = StateHistoryEntry(state=state, updated_at=at or Timestamp.now())
        return Matter(
            id=self.id,
            name=self.name,
            state=state,
            state_history=self.state_history + (entry,),
            created_at=self.created_at,
        )

    def to_document(self) -> Dict[str, Any]:
        """Plain snapshot, as stored in the mirror file and sent over the wire."""
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state.value,
            "stateHistory": [e.to_document() for e in self.state_history],
            "createdAt": self.created_at.to_iso(),
        }

    @staticmethod
    def from_document(doc: Dict[str, Any]) -> Matter:
        """
        Rebuild a Matter from a plain snapshot.

        Unknown keys (store-added fields) are ignored. Missing state
        defaults to gaseous and missing createdAt to now.
        """
        if not isinstance(doc, dict):
            raise MatterValidationError("Matter snapshot must be an object")
        history = doc.get("stateHistory") or []
        if not isinstance(history, list):
            raise MatterValidationError("stateHistory must be an array")
        raw_state = doc.get("state")
        created = doc.get("createdAt")
        return Matter(
            id=validate_id(doc.get("id")),
            name=_validate_name(doc.get("name")),
            state=MatterState.GASEOUS if raw_state is None else MatterState.parse(raw_state),
            state_history=tuple(StateHistoryEntry.from_document(e) for e in history),
            created_at=Timestamp.now() if created is None else Timestamp.coerce(created),
        )
