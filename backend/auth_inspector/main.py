"""Auth Inspector FastAPI Application.

Entry point for the management server: loads the credential store, starts
the inspection scheduler, and exposes the management API.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from auth_inspector.api.health import router as health_router
from auth_inspector.api.v1.inspection import router as inspection_router
from auth_inspector.middleware.auth import APIKeyAuthMiddleware
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    from auth_inspector.api.health import set_dependencies as set_health_deps
    from auth_inspector.api.v1.inspection import set_dependencies as set_inspection_deps
    from auth_inspector.config import settings
    from auth_inspector.inspection.config_store import InspectionConfigStore
    from auth_inspector.inspection.scheduler import InspectionScheduler
    from auth_inspector.inspection.verifier import BatchVerifier
    from auth_inspector.store.manager import CredentialManager

    manager = CredentialManager()
    manager.load_directory(settings.auth_dir)

    scheduler = InspectionScheduler(
        verifier=BatchVerifier(manager),
        config_store=InspectionConfigStore.from_settings(),
        auth_dir=settings.auth_dir,
    )
    set_inspection_deps(scheduler)
    set_health_deps(manager, scheduler)
    await scheduler.start()

    yield

    scheduler.stop()


app = FastAPI(
    title="Auth Inspector",
    description="Periodic health auditing of stored provider credentials",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware (order matters: first added = outermost)
from auth_inspector.config import settings as _settings

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(APIKeyAuthMiddleware)


# Global exception handler: internal details stay out of responses
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        raise exc
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error."},
    )


# Routes
app.include_router(health_router)
app.include_router(inspection_router)
