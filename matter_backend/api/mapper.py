"""
API Mapper
==========

Transforms Matter records into the JSON shapes returned by the API.
Field names follow the wire format: id, name, state, stateHistory,
createdAt.
"""
from typing import Any, Dict, Iterable, List

from ..contracts.base import Matter


def map_matter_to_dto(matter: Matter) -> Dict[str, Any]:
    """Map a single Matter to its JSON representation."""
    return matter.to_document()


def map_matters_to_dto(matters: Iterable[Matter]) -> List[Dict[str, Any]]:
    return [map_matter_to_dto(m) for m in matters]


def map_deleted_to_dto(matter: Matter) -> Dict[str, Any]:
    """Body returned by a successful delete."""
    return {"message": "Matter deleted", "matter": map_matter_to_dto(matter)}


def format_validation_errors(errors: Iterable[Dict[str, Any]]) -> str:
    """
    Flatten FastAPI/pydantic validation errors into one message.

    e.g. "body.name: Field required; path.matter_id: Input should be a valid integer"
    """
    parts = []
    for err in errors:
        location = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{location}: {err.get('msg', 'invalid')}")
    return "; ".join(parts) or "Invalid request"
