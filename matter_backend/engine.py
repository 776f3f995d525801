"""
Engine Orchestration Module

Wires the store, the solid mirror file, the service and the startup
reconciler together behind one object the API layer depends on.

DESIGN PRINCIPLES:
==================
1. Dependencies are passed in explicitly, never read from globals
2. Reconciliation runs exactly once, before the backend reports ready
3. Configuration comes from dataclasses, overridable through the environment
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping, Optional
import logging
import os

from .storage import MatterStore, MatterStorageConfig, create_store
from .storage.solid_mirror import SolidMirrorFile
from .service import MatterService
from .reconciler import StartupReconciler, ReconciliationReport

logger = logging.getLogger(__name__)


@dataclass
class BackendConfig:
    """Unified configuration for the matter backend."""
    storage: MatterStorageConfig = None
    solid_file: str = "solidMatters.json"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    def __post_init__(self):
        self.storage = self.storage or MatterStorageConfig()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> BackendConfig:
        """Build a config from MATTER_* environment variables."""
        env = os.environ if environ is None else environ
        defaults = cls()
        storage = MatterStorageConfig(
            backend_type=env.get("MATTER_STORE_BACKEND", defaults.storage.backend_type),
            mongo_uri=env.get("MATTER_MONGO_URI", defaults.storage.mongo_uri),
            database=env.get("MATTER_MONGO_DATABASE", defaults.storage.database),
            collection=env.get("MATTER_MONGO_COLLECTION", defaults.storage.collection),
            server_selection_timeout_ms=int(env.get(
                "MATTER_MONGO_TIMEOUT_MS", defaults.storage.server_selection_timeout_ms
            )),
        )
        return cls(
            storage=storage,
            solid_file=env.get("MATTER_SOLID_FILE", defaults.solid_file),
            host=env.get("MATTER_HOST", defaults.host),
            port=int(env.get("MATTER_PORT", defaults.port)),
            log_level=env.get("MATTER_LOG_LEVEL", defaults.log_level).upper(),
        )


class MatterTrackerBackend:
    """
    Unified backend for the matter tracker.

    LIFECYCLE:
    ==========
    1. Construct: store, mirror file, service and reconciler
    2. start(): reconcile store against the mirror file, mark ready
    3. close(): release the store connection
    """

    def __init__(
        self,
        config: Optional[BackendConfig] = None,
        store: Optional[MatterStore] = None,
    ):
        self._config = config or BackendConfig()
        self._store = store if store is not None else create_store(self._config.storage)
        self._mirror = SolidMirrorFile(self._config.solid_file)
        self._service = MatterService(self._store, self._mirror)
        self._reconciler = StartupReconciler(self._store, self._mirror)
        self._report: Optional[ReconciliationReport] = None

    def start(self) -> ReconciliationReport:
        """Reconcile once; later calls return the first report."""
        if self._report is None:
            logger.info("Starting matter backend (solid file: %s)", self._mirror.path)
            self._report = self._reconciler.run()
        return self._report

    def close(self):
        logger.info("Shutting down matter backend")
        self._store.close()

    @property
    def ready(self) -> bool:
        return self._report is not None

    @property
    def service(self) -> MatterService:
        return self._service

    @property
    def store(self) -> MatterStore:
        return self._store

    @property
    def mirror(self) -> SolidMirrorFile:
        return self._mirror

    @property
    def config(self) -> BackendConfig:
        return self._config
