"""
Solid Mirror File

A flat JSON array holding plain snapshots of every matter that became
solid. Read once at startup to restore solid records; written on each
transition into the solid state.

No deduplication happens here: the same id may appear more than once.
"""

from __future__ import annotations
from typing import Any, Dict, List
import json
import logging
import os
import tempfile

logger = logging.getLogger(__name__)


class SolidMirrorFile:
    """Read/write access to the solid-matter snapshot file."""

    def __init__(self, path: str):
        self._path = path

    @property
    def path(self) -> str:
        return self._path

    def load(self) -> List[Dict[str, Any]]:
        """
        Return the stored snapshots.

        An absent, blank or unparseable file yields an empty list;
        parse failures are logged, never raised.
        """
        if not os.path.exists(self._path):
            return []

        with open(self._path, 'r', encoding='utf-8') as f:
            data = f.read()

        if not data.strip():
            return []

        try:
            snapshots = json.loads(data)
        except json.JSONDecodeError as e:
            logger.error("Error parsing JSON from %s: %s", self._path, e)
            return []

        if not isinstance(snapshots, list):
            logger.error(
                "Expected a JSON array in %s, found %s",
                self._path, type(snapshots).__name__,
            )
            return []

        return snapshots

    def save(self, snapshots: List[Dict[str, Any]]):
        """Overwrite the file with the full sequence (temp file + rename)."""
        directory = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(directory, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=directory, prefix=".solid-", suffix=".json.tmp"
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(snapshots, f, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def append(self, snapshot: Dict[str, Any]):
        """Append one snapshot and rewrite the file."""
        snapshots = self.load()
        snapshots.append(snapshot)
        self.save(snapshots)
