"""
Security headers added to every API response.

The calendar HTML fragment (/calendar/view.html) is the only markup the API
serves; it is embedded by the back-office frontend, so framing is limited to
the configured frontend origins.
"""

import logging
import os
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import FRONTEND_URL

logger = logging.getLogger(__name__)

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development").lower() == "production"
FRONTEND_ORIGINS = os.getenv("FRONTEND_ORIGINS", FRONTEND_URL)


def get_csp_policy() -> str:
    frame_ancestors = " ".join(o.strip() for o in FRONTEND_ORIGINS.split(",") if o.strip())
    directives = [
        "default-src 'self'",
        f"frame-ancestors 'self' {frame_ancestors}",
        "script-src 'self' https://apis.google.com https://www.gstatic.com",
        "style-src 'self'",
        "img-src 'self' data: https:",
        "connect-src 'self' https://identitytoolkit.googleapis.com https://securetoken.googleapis.com",
        "base-uri 'none'",
        "form-action 'self'",
    ]
    return "; ".join(directives)


def get_permissions_policy() -> str:
    features = ["camera=()", "geolocation=()", "microphone=()", "payment=()", "usb=()"]
    return ", ".join(features)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds framing, sniffing, referrer and cache headers to every non-excluded response"""

    def __init__(self, app, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []
        self.csp = get_csp_policy()
        self.permissions = get_permissions_policy()

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        path = request.url.path
        if any(path.startswith(excluded) for excluded in self.exclude_paths):
            return response

        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = self.csp
        response.headers["Permissions-Policy"] = self.permissions
        # Popups must keep their opener for the Google sign-in flow
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin-allow-popups"

        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # Appointment and profile data must never be cached by intermediaries
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        return response
