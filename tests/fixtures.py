"""
Test Fixtures

Fixed timestamps and snapshot builders for deterministic tests.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from matter_backend.contracts.base import Timestamp


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

T0 = Timestamp(datetime(2026, 1, 1, 9, 0, 0, tzinfo=timezone.utc))
T1 = Timestamp(datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc))
T2 = Timestamp(datetime(2026, 1, 1, 10, 5, 0, tzinfo=timezone.utc))


# =============================================================================
# SNAPSHOT BUILDERS
# =============================================================================

def solid_snapshot(matter_id: int, name: str = "Ice") -> Dict[str, Any]:
    """A mirror-file snapshot of a matter that went liquid then solid."""
    return {
        "id": matter_id,
        "name": name,
        "state": "solid",
        "stateHistory": [
            {"state": "liquid", "updatedAt": T1.to_iso()},
            {"state": "solid", "updatedAt": T2.to_iso()},
        ],
        "createdAt": T0.to_iso(),
    }
