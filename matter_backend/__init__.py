"""
Matter Tracker Backend

This package implements a small layered service tracking "matter"
records (named items in a gaseous, liquid or solid state) and their
state-transition history.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Matter, MatterState, Timestamp and the error taxonomy
   - Shared by every layer; no behaviour beyond conversion

2. STORAGE (storage/)
   - Responsibility: id-keyed persistence (MongoDB or in-memory)
   - Solid mirror file: JSON array of every matter that became solid
   - MUST NOT: enforce state rules

3. SERVICE (service.py)
   - Responsibility: CRUD rules and the state machine
   - Solid matters are frozen; history grows on every state change

4. RECONCILER (reconciler.py)
   - Runs once at startup: purge non-solid records, restore solids
     from the mirror file

5. API (api/)
   - FastAPI routes over the service; errors as {"error": message}
"""

__version__ = "0.1.0"
