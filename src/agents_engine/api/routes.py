"""
REST API routes for the workflow engine.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query

from ..core.errors import ConfigurationError
from ..models.api import ResumeRequest, RunRequest, RunResponse, ValidateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["workflows"])


# These will be set by the main app
_run_manager = None
_audit_log = None


def set_dependencies(run_manager, audit_log):
    """Set dependencies from main app."""
    global _run_manager, _audit_log
    _run_manager = run_manager
    _audit_log = audit_log


# Definitions

@router.post("/workflows/validate")
async def validate_workflow(request: ValidateRequest):
    """Validate a workflow definition without executing it."""
    if not _run_manager:
        raise HTTPException(status_code=503, detail="Service not ready")

    try:
        report = _run_manager.validate(request.definition)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "valid": report.valid,
        "errors": [issue.model_dump() for issue in report.errors],
        "warnings": [issue.model_dump() for issue in report.warnings],
    }


# Runs

@router.post("/runs", response_model=RunResponse)
async def start_run(request: RunRequest):
    """Run a workflow to completion, failure or interruption."""
    if not _run_manager:
        raise HTTPException(status_code=503, detail="Service not ready")

    try:
        result = await _run_manager.start(request.input, request.definition, request.variables)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return RunResponse.from_result(result)


@router.get("/runs/{run_id}", response_model=RunResponse)
async def get_run(run_id: str):
    """Get the latest result of a run."""
    if not _run_manager:
        raise HTTPException(status_code=503, detail="Service not ready")

    result = _run_manager.get(run_id)
    if not result:
        raise HTTPException(status_code=404, detail="Run not found")

    return RunResponse.from_result(result)


@router.post("/runs/{run_id}/resume", response_model=RunResponse)
async def resume_run(run_id: str, request: ResumeRequest):
    """Resume an interrupted run with approval decisions."""
    if not _run_manager:
        raise HTTPException(status_code=503, detail="Service not ready")

    if not _run_manager.is_suspended(run_id):
        raise HTTPException(status_code=404, detail="No interrupted run with that id")

    result = await _run_manager.resume(run_id, request.decisions)
    return RunResponse.from_result(result)


# Audit

@router.get("/audit")
async def list_audit_events(
    run_id: Optional[str] = Query(default=None),
    event_type: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
):
    """List audit events, most recent last."""
    if _audit_log is None:
        raise HTTPException(status_code=503, detail="Service not ready")

    events = _audit_log.events(run_id=run_id, event_type=event_type)
    return {
        "events": [event.model_dump(mode="json") for event in events[-limit:]],
        "total": len(events),
    }
