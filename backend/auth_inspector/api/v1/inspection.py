"""Auth inspection management API.

GET    /v0/management/auth-inspection/config    — current config + bounds
PUT    /v0/management/auth-inspection/config    — partial config update
GET    /v0/management/auth-inspection/status    — config + run progress snapshot
POST   /v0/management/auth-inspection/run       — request a manual run
DELETE /v0/management/auth-files                — delete failed and/or invalid auth files
POST   /v0/management/auth-files/verify-invalid — verify one page of credentials
"""

from __future__ import annotations

import logging

from auth_inspector.inspection.config_store import (
    MAX_INTERVAL_SECONDS,
    MIN_INTERVAL_SECONDS,
    ConfigPersistError,
    ConfigValidationError,
)
from auth_inspector.inspection.remediation import delete_auth_files
from auth_inspector.inspection.scheduler import InspectionScheduler
from auth_inspector.models.inspection import VerifyBatchResult
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v0/management", tags=["auth-inspection"])

# Module-level dependency, set during app startup
_scheduler: InspectionScheduler | None = None


def set_dependencies(scheduler: InspectionScheduler) -> None:
    """Wire the inspection scheduler (called from main.py lifespan)."""
    global _scheduler
    _scheduler = scheduler


def _require_scheduler() -> InspectionScheduler:
    if _scheduler is None:
        raise HTTPException(status_code=503, detail="Inspection scheduler not initialized.")
    return _scheduler


# === Request / Response Models ===


class InspectionConfigResponse(BaseModel):
    enabled: bool
    interval_seconds: int
    auto_delete_invalid: bool
    min_interval_seconds: int = MIN_INTERVAL_SECONDS
    max_interval_seconds: int = MAX_INTERVAL_SECONDS


class UpdateConfigRequest(BaseModel):
    enabled: bool | None = None
    interval_seconds: int | None = None
    auto_delete_invalid: bool | None = None


class UpdateConfigResponse(BaseModel):
    status: str = "ok"
    enabled: bool
    interval_seconds: int
    auto_delete_invalid: bool


class RunNowResponse(BaseModel):
    status: str = "ok"
    started: bool
    reason: str = ""
    inspection: dict


class DeleteFilesResponse(BaseModel):
    status: str = "ok"
    matched: int
    deleted: int
    files: list[str]
    errors: list[str]


# === Config ===


@router.get("/auth-inspection/config", response_model=InspectionConfigResponse)
async def get_inspection_config() -> InspectionConfigResponse:
    cfg = _require_scheduler().config_store.effective()
    return InspectionConfigResponse(**cfg.model_dump())


@router.put("/auth-inspection/config", response_model=UpdateConfigResponse)
async def update_inspection_config(request: UpdateConfigRequest) -> UpdateConfigResponse:
    """Update any subset of enabled / interval_seconds / auto_delete_invalid."""
    scheduler = _require_scheduler()
    try:
        cfg = scheduler.update_config(
            enabled=request.enabled,
            interval_seconds=request.interval_seconds,
            auto_delete_invalid=request.auto_delete_invalid,
        )
    except ConfigValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigPersistError as e:
        logger.error("Inspection config save failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return UpdateConfigResponse(**cfg.model_dump())


# === Status / Trigger ===


@router.get("/auth-inspection/status")
async def get_inspection_status() -> dict:
    return {"status": "ok", "inspection": _require_scheduler().get_status()}


@router.post("/auth-inspection/run", response_model=RunNowResponse)
async def run_inspection_now() -> RunNowResponse:
    """Request a manual run; started=False if busy or already queued."""
    scheduler = _require_scheduler()
    if not scheduler.is_running:
        raise HTTPException(status_code=503, detail="Inspection scheduler unavailable.")
    started, reason = scheduler.request_run()
    return RunNowResponse(started=started, reason=reason, inspection=scheduler.get_status())


# === Auth files ===


@router.delete("/auth-files", response_model=DeleteFilesResponse)
async def delete_auth_files_endpoint(
    failed: bool = Query(default=False),
    invalid: bool = Query(default=False),
) -> DeleteFilesResponse:
    """Delete auth files of failed and/or invalid credentials inside the auth dir."""
    if not failed and not invalid:
        raise HTTPException(status_code=400, detail="Specify failed=true and/or invalid=true.")
    scheduler = _require_scheduler()
    result = delete_auth_files(
        scheduler.verifier.manager,
        scheduler.auth_dir,
        failed=failed,
        invalid=invalid,
    )
    return DeleteFilesResponse(**result.model_dump())


@router.post("/auth-files/verify-invalid", response_model=VerifyBatchResult)
async def verify_invalid_auth_files(
    provider: str = Query(default="codex", max_length=64),
    concurrency: int = Query(default=0, ge=0),
    batch_size: int = Query(default=0, ge=0),
    cursor: int = Query(default=0, ge=0),
) -> VerifyBatchResult:
    """Probe one page of credentials and record valid / invalid verdicts."""
    scheduler = _require_scheduler()
    return await scheduler.verifier.verify_batch(
        provider=provider,
        concurrency=concurrency,
        batch_size=batch_size,
        cursor=cursor,
    )
