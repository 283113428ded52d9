"""Health check endpoint — auth directory, credential store, inspection scheduler."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from auth_inspector.config import settings
from fastapi import APIRouter
from pydantic import BaseModel

router = APIRouter()

VERSION = "0.1.0"

# Module-level references, set by main.py at startup
_manager = None
_scheduler = None


def set_dependencies(manager, scheduler) -> None:
    """Wire the credential manager and inspection scheduler (called from main.py lifespan)."""
    global _manager, _scheduler
    _manager = manager
    _scheduler = scheduler


class HealthStatus(BaseModel):
    status: str  # "healthy" | "degraded" | "unhealthy"
    version: str
    checks: dict[str, dict]
    timestamp: datetime


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Check the auth directory, credential store and scheduler."""
    checks: dict[str, dict] = {}
    overall_healthy = True
    has_warning = False

    # 1. Auth directory
    auth_dir = Path(settings.auth_dir)
    if auth_dir.is_dir():
        checks["auth_dir"] = {"status": "ok", "detail": str(auth_dir.resolve())}
    else:
        checks["auth_dir"] = {"status": "error", "detail": f"{auth_dir} does not exist"}
        overall_healthy = False

    # 2. Credential store
    if _manager is None:
        checks["credentials"] = {"status": "error", "detail": "credential manager not initialized"}
        overall_healthy = False
    else:
        checks["credentials"] = {"status": "ok", "detail": f"{len(_manager)} registered"}

    # 3. Inspection scheduler
    if _scheduler is None:
        checks["inspection"] = {"status": "error", "detail": "scheduler not initialized"}
        overall_healthy = False
    elif not _scheduler.is_running:
        checks["inspection"] = {"status": "warning", "detail": "scheduler loop not running"}
        has_warning = True
    else:
        snap = _scheduler.tracker.snapshot()
        detail = "run in progress" if snap.running else "idle"
        if snap.last_error:
            detail += f" (last error: {snap.last_error[:100]})"
            has_warning = True
        checks["inspection"] = {"status": "ok", "detail": detail}

    if overall_healthy:
        status = "degraded" if has_warning else "healthy"
    else:
        status = "unhealthy"

    return HealthStatus(
        status=status,
        version=VERSION,
        checks=checks,
        timestamp=datetime.now(timezone.utc),
    )
