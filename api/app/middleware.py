"""Security middleware for the API."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths that are too noisy to log on every request
QUIET_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
QUIET_PATH_PREFIXES = ("/vault/",)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency of every API call at INFO level."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)

        path = request.url.path
        if request.method != "OPTIONS" and path not in QUIET_PATHS and not path.startswith(QUIET_PATH_PREFIXES):
            elapsed_ms = (time.perf_counter() - started) * 1000
            log = logger.warning if response.status_code >= 500 else logger.info
            log(f"{request.method} {path} -> {response.status_code} ({elapsed_ms:.1f} ms)")

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Implements OWASP recommended security headers to protect against
    common web vulnerabilities.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Referrer policy - only send origin on cross-origin requests
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Permissions policy - disable unnecessary browser features
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )

        # HSTS - Force HTTPS in production
        environment = os.getenv("ENVIRONMENT", "development")
        if environment == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # The API serves JSON plus uploaded media from the vault
        csp_directives = [
            "default-src 'self'",
            "img-src 'self' data:",
            "media-src 'self'",
            "frame-ancestors 'none'",
            "base-uri 'self'",
            "form-action 'self'",
        ]
        response.headers["Content-Security-Policy"] = "; ".join(csp_directives)

        return response
