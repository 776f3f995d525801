"""
Contracts Module

Shared types passed between the storage, service and API layers.
No layer may import implementation details from another layer; they
exchange only the types defined here.

DESIGN PRINCIPLES:
==================
1. Records are frozen dataclasses; a change produces a new record
2. Every failure is an explicit, enumerated error
3. All timestamps are UTC and are never mutated
"""

from .base import (
    MatterState,
    Timestamp,
    StateHistoryEntry,
    Matter,
    ErrorCode,
    MatterError,
    MatterNotFoundError,
    InvalidTransitionError,
    MatterValidationError,
    DuplicateMatterError,
    validate_id,
)

__all__ = [
    "MatterState",
    "Timestamp",
    "StateHistoryEntry",
    "Matter",
    "ErrorCode",
    "MatterError",
    "MatterNotFoundError",
    "InvalidTransitionError",
    "MatterValidationError",
    "DuplicateMatterError",
    "validate_id",
]
