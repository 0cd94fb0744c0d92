"""
Rule History: Read-Only API Server
==================================

Read-only API over the reconciliation engine.

Endpoints:
- GET /health
- GET /api/v1/rules/{name}/history     -> merged change timeline
- GET /api/v1/rules/{name}/summary     -> summary statistics
- GET /api/v1/rules/{name}/current     -> current state (?as_of=ISO timestamp)
- GET /api/v1/rules/{name}/timeline    -> lifecycle events
- GET /api/v1/rules/{name}/parameters  -> parameter value history
- GET /api/v1/rules/{name}/versions    -> version summary and origin audit
- GET /api/v1/rules/{name}/compare     -> two versions side by side (?first=&second=)

Status mapping:
- unknown rule        404 (also an unknown version id on /compare)
- NoActiveVersion     409
- SourceUnavailable   502
- SourceTimeout       504

Usage:
    RULE_HISTORY_DB=rules.db uvicorn rule_history.api.server:app
"""
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional, TypeVar

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..config import ReconciliationConfig, SourceConfig
from ..contracts.base import (
    ErrorCode, Timestamp, TimeRange,
    EntityNotFound, SourceTimeout, SourceUnavailable
)
from ..engine import ReconciliationEngine, ReconciliationReport
from ..sources import HttpRecordSource, RecordSource, SqliteRecordSource
from ..temporal import window
from .mapper import (
    map_comparison, map_current_state, map_error, map_lifecycle, map_parameters,
    map_summary, map_timeline, map_versions
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

# Global engine instance
engine_instance: Optional[ReconciliationEngine] = None


def build_source(config: SourceConfig, timeout: float) -> RecordSource:
    """SQLite when a database path is configured, else the HTTP service."""
    if config.database_path:
        return SqliteRecordSource(config.database_path)
    if config.base_url:
        return HttpRecordSource(config.base_url, timeout=timeout, headers=config.headers)
    raise SourceUnavailable("set RULE_HISTORY_DB or RULE_HISTORY_BASE_URL")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the engine from RULE_HISTORY_* environment variables."""
    global engine_instance

    config = ReconciliationConfig.from_env()
    source = build_source(SourceConfig.from_env(), config.source_timeout_seconds)
    logger.info("initializing rule history engine over %s", type(source).__name__)
    engine_instance = ReconciliationEngine(source, config)

    yield

    logger.info("shutting down rule history engine")
    source.close()
    engine_instance = None


app = FastAPI(
    title="Rule History API",
    version="0.1.0",
    description="Read-only rule history reconciliation",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _parse_time(raw: Optional[str], name: str) -> Optional[Timestamp]:
    if raw is None:
        return None
    try:
        return Timestamp.from_iso(raw)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"{name} is not an ISO-8601 timestamp: {raw}")


def _run(call: Callable[[ReconciliationEngine], T]) -> T:
    if not engine_instance:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    try:
        return call(engine_instance)
    except EntityNotFound as e:
        raise HTTPException(status_code=404, detail=map_error(e.error))
    except SourceTimeout as e:
        raise HTTPException(status_code=504, detail=map_error(e.error))
    except SourceUnavailable as e:
        raise HTTPException(status_code=502, detail=map_error(e.error))


def _reconcile(name: str, as_of: Optional[Timestamp] = None) -> ReconciliationReport:
    return _run(lambda engine: engine.reconcile(name, as_of=as_of))


# =============================================================================
# ENDPOINTS
# =============================================================================

@app.get("/health")
def health_check():
    """System status."""
    if not engine_instance:
        raise HTTPException(status_code=503, detail="Engine not initialized")
    return {"status": "online", "source": type(engine_instance.source).__name__}


@app.get("/api/v1/rules/{name}/history")
def get_history(name: str, since: Optional[str] = None, until: Optional[str] = None):
    """
    Merged change timeline, newest first.
    Optional since/until restrict the timeline; either side may be open.
    """
    try:
        time_range = TimeRange(start=_parse_time(since, "since"), end=_parse_time(until, "until"))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    report = _reconcile(name)
    changes = window(report.timeline, time_range)

    return {
        "logical_name": report.logical_name,
        "changes": map_timeline(changes),
        "warnings": [map_error(w) for w in report.warnings],
    }


@app.get("/api/v1/rules/{name}/summary")
def get_summary(name: str):
    report = _reconcile(name)
    return {"logical_name": report.logical_name, **map_summary(report.summary)}


@app.get("/api/v1/rules/{name}/current")
def get_current(name: str, as_of: Optional[str] = None):
    """Current state, or the state at `as_of` (ISO 8601)."""
    report = _reconcile(name, as_of=_parse_time(as_of, "as_of"))
    if report.current_state is None:
        for warning in report.warnings:
            if warning.code is ErrorCode.NO_ACTIVE_VERSION:
                raise HTTPException(status_code=409, detail=map_error(warning))
        detail = [map_error(w) for w in report.warnings]
        raise HTTPException(status_code=500, detail=detail)
    return map_current_state(report.current_state)


@app.get("/api/v1/rules/{name}/timeline")
def get_timeline(name: str):
    report = _reconcile(name)
    return {"logical_name": report.logical_name, "events": map_lifecycle(report.lifecycle)}


@app.get("/api/v1/rules/{name}/parameters")
def get_parameters(name: str):
    report = _reconcile(name)
    return {"logical_name": report.logical_name, "parameters": map_parameters(report.parameters)}


@app.get("/api/v1/rules/{name}/versions")
def get_versions(name: str):
    report = _reconcile(name)
    return map_versions(report.versions)


@app.get("/api/v1/rules/{name}/compare")
def get_comparison(name: str, first: int, second: int):
    """Current parameters of two versions side by side."""
    comparison = _run(lambda engine: engine.compare(name, first, second))
    return map_comparison(comparison)
