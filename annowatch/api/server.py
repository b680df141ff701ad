"""FastAPI admin API, served inside the watcher's event loop."""

from pathlib import Path
from typing import Optional, Any
import logging

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel
import uvicorn

from ..engine import WatcherService
from ..models import ProcessingRecord, RecordState

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------

class ResubmitRequest(BaseModel):
    """Request to re-process a failed file."""
    path: str


class RecordResponse(BaseModel):
    """Processing record response model."""
    path: str
    state: str
    attempts: int
    output_path: Optional[str]
    error_message: Optional[str]
    created_at: str
    started_at: Optional[str]
    completed_at: Optional[str]
    duration_seconds: Optional[float]


class StatsResponse(BaseModel):
    """Watcher statistics response."""
    state: str
    directory: str
    annotator: Optional[dict[str, Any]]
    uptime_seconds: Optional[float]
    records: int
    in_flight: int
    max_concurrent: int
    by_state: dict[str, int]


# -------------------------------------------------------------------------
# App Factory
# -------------------------------------------------------------------------

def create_app(service: WatcherService) -> FastAPI:
    """Create the admin API for a running (or starting) service."""
    app = FastAPI(
        title="annowatch admin API",
        description="Inspect and re-submit files handled by an annowatch daemon",
        version="1.0.0",
    )

    def require_dispatcher():
        if service.dispatcher is None:
            raise HTTPException(status_code=503, detail=f"Watcher is {service.get_stats()['state']}")
        return service.dispatcher

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "state": service.get_stats()["state"]}

    @app.get("/api/stats", response_model=StatsResponse)
    async def get_stats():
        """Get watcher statistics."""
        return service.get_stats()

    # -------------------------------------------------------------------------
    # Record Endpoints
    # -------------------------------------------------------------------------

    @app.get("/api/records", response_model=list[RecordResponse])
    async def list_records(state: Optional[RecordState] = Query(None)):
        """List processing records, optionally filtered by state."""
        dispatcher = require_dispatcher()
        records = dispatcher.records
        if state is not None:
            records = [r for r in records if r.state == state]
        return [_record_to_response(r) for r in records]

    @app.get("/api/records/{path:path}", response_model=RecordResponse)
    async def get_record(path: str):
        """Get the record for one input path."""
        dispatcher = require_dispatcher()
        record = dispatcher.get_record(_absolute(path))
        if record is None:
            raise HTTPException(status_code=404, detail=f"No record for {path}")
        return _record_to_response(record)

    @app.post("/api/records/resubmit", response_model=RecordResponse, status_code=202)
    async def resubmit_record(request: ResubmitRequest):
        """Re-process a file whose last attempt failed."""
        dispatcher = require_dispatcher()
        path = _absolute(request.path)
        try:
            started = await dispatcher.resubmit(path)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"No record for {request.path}")

        record = dispatcher.get_record(path)
        if not started:
            raise HTTPException(
                status_code=409,
                detail=f"{request.path} is {record.state}; only failed files can be re-submitted",
            )
        return _record_to_response(record)

    return app


def _absolute(path: str) -> str:
    """URL paths lose their leading slash; put it back."""
    return path if Path(path).is_absolute() else "/" + path


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _record_to_response(record: ProcessingRecord) -> dict:
    """Convert a ProcessingRecord to a response dict."""
    return {
        "path": record.path,
        "state": record.state,
        "attempts": record.attempts,
        "output_path": record.output_path,
        "error_message": record.error_message,
        "created_at": record.created_at.isoformat(),
        "started_at": _isoformat(record.started_at),
        "completed_at": _isoformat(record.completed_at),
        "duration_seconds": record.duration_seconds,
    }


# -------------------------------------------------------------------------
# Embedded server
# -------------------------------------------------------------------------

def create_server(service: WatcherService, host: str, port: int, log_level: str = "warning") -> uvicorn.Server:
    """Build a uvicorn server for the admin API; run it with ``await server.serve()``."""
    config = uvicorn.Config(
        create_app(service),
        host=host,
        port=port,
        log_level=log_level,
    )
    logger.info(f"Admin API will listen on http://{host}:{port}")
    return uvicorn.Server(config)
