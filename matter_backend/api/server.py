"""
Matter Tracker: HTTP API Server
===============================

CRUD API over matter records and their state-transition history.

Endpoints:
- POST   /matter                -> Create a matter (gaseous)
- PUT    /matter/{id}           -> Update state (refused once solid)
- DELETE /matter/{id}           -> Delete (refused once solid)
- GET    /matters               -> List, optional ?state= filter
- GET    /matters/counts        -> Total and per-state counts
- GET    /matter/{id}           -> One matter
- GET    /matter/{id}/history   -> State history
- GET    /health                -> Readiness

Every error body is {"error": message}.

Usage:
    uvicorn matter_backend.api.server:app
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..contracts.base import MatterError
from ..engine import BackendConfig, MatterTrackerBackend
from ..service import MatterService
from .mapper import (
    map_matter_to_dto, map_matters_to_dto, map_deleted_to_dto,
    format_validation_errors,
)

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class MatterCreateRequest(BaseModel):
    id: int
    name: str


class StateUpdateRequest(BaseModel):
    # Validated by the service so unknown values get its error message
    state: str


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_backend(request: Request) -> MatterTrackerBackend:
    backend: Optional[MatterTrackerBackend] = request.app.state.backend
    if backend is None or not backend.ready:
        raise HTTPException(status_code=503, detail="Backend not initialized")
    return backend


def get_service(backend: MatterTrackerBackend = Depends(get_backend)) -> MatterService:
    return backend.service


# =============================================================================
# ENDPOINTS
# =============================================================================

router = APIRouter()


@router.get("/health")
def health_check(backend: MatterTrackerBackend = Depends(get_backend)):
    """System status."""
    return {"status": "online", "ready": backend.ready}


@router.post("/matter", status_code=201)
def create_matter(body: MatterCreateRequest, service: MatterService = Depends(get_service)):
    return map_matter_to_dto(service.create_matter(body.id, body.name))


@router.put("/matter/{matter_id}")
def update_matter_state(
    matter_id: int,
    body: StateUpdateRequest,
    service: MatterService = Depends(get_service),
):
    return map_matter_to_dto(service.update_state(matter_id, body.state))


@router.delete("/matter/{matter_id}")
def delete_matter(matter_id: int, service: MatterService = Depends(get_service)):
    return map_deleted_to_dto(service.delete_matter(matter_id))


@router.get("/matters")
def list_matters(state: Optional[str] = None, service: MatterService = Depends(get_service)):
    """List matters, optionally filtered by state."""
    return map_matters_to_dto(service.list_matters(state))


@router.get("/matters/counts")
def count_matters(service: MatterService = Depends(get_service)):
    """Total number of matters and counts grouped by state."""
    return service.count_matters()


@router.get("/matter/{matter_id}")
def get_matter(matter_id: int, service: MatterService = Depends(get_service)):
    return map_matter_to_dto(service.get_matter(matter_id))


@router.get("/matter/{matter_id}/history")
def get_matter_history(matter_id: int, service: MatterService = Depends(get_service)):
    return service.get_history(matter_id)


# =============================================================================
# ERROR MAPPING
# =============================================================================

async def _matter_error_handler(request: Request, exc: MatterError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": format_validation_errors(exc.errors())},
    )


async def _store_error_handler(request: Request, exc: PyMongoError):
    logger.warning("Store error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _file_error_handler(request: Request, exc: OSError):
    logger.warning("Solid file error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the backend and reconcile the store before serving."""
    backend: Optional[MatterTrackerBackend] = app.state.backend
    if backend is None:
        config = app.state.config or BackendConfig.from_env()
        backend = await run_in_threadpool(MatterTrackerBackend, config)
        app.state.backend = backend

    await run_in_threadpool(backend.start)
    logger.info("Matter backend ready")

    yield

    await run_in_threadpool(backend.close)


def create_app(
    config: Optional[BackendConfig] = None,
    backend: Optional[MatterTrackerBackend] = None,
) -> FastAPI:
    """
    Create the API application.

    Pass `backend` to inject a prebuilt backend (its store and mirror
    file), or `config` to have one built on startup. With neither,
    configuration is read from the environment at startup.
    """
    app = FastAPI(
        title="Matter Tracker API",
        version="0.1.0",
        description="State tracking for gaseous, liquid and solid matter",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.backend = backend

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MatterError, _matter_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(PyMongoError, _store_error_handler)
    app.add_exception_handler(OSError, _file_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)

    app.include_router(router)
    return app


app = create_app()
