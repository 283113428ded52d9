"""Management key authentication middleware.

Single-key Bearer authentication. The key is read from MANAGEMENT_API_KEY.
When no key is configured, authentication is disabled (development mode).

Exempt paths: /health, /docs, /openapi.json, /redoc, /
"""

from __future__ import annotations

import logging
import secrets

from auth_inspector.config import settings
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# Paths that don't require authentication
_EXEMPT_PATHS = frozenset({"/health", "/docs", "/openapi.json", "/redoc", "/"})


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    """Validates the Bearer token from the Authorization header.

    If MANAGEMENT_API_KEY is empty, all requests are allowed (dev mode).
    """

    async def dispatch(self, request: Request, call_next):
        api_key = settings.management_api_key

        # Dev mode: no key configured → skip auth
        if not api_key:
            return await call_next(request)

        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        token = self._extract_token(request)
        if token is None:
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing authentication. Use Authorization: Bearer <key>"},
            )

        if not secrets.compare_digest(token, api_key):
            logger.warning(
                "Invalid management key attempt from %s on %s",
                request.client.host if request.client else "unknown",
                request.url.path,
            )
            return JSONResponse(
                status_code=403,
                content={"detail": "Invalid management key."},
            )

        return await call_next(request)

    @staticmethod
    def _extract_token(request: Request) -> str | None:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:]
        return None
