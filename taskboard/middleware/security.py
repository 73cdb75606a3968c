from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable, Dict, Optional

from taskboard.core.config import settings

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}

HSTS_VALUE = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Hardening headers for the JSON API.

    Task payloads under the API prefix are never cached by intermediaries;
    HSTS is only sent when the service runs behind HTTPS.
    """

    def __init__(self, app, enable_hsts: bool = False, extra_headers: Optional[Dict[str, str]] = None):
        super().__init__(app)
        self.headers = dict(BASE_HEADERS)
        if enable_hsts:
            self.headers["Strict-Transport-Security"] = HSTS_VALUE
        self.headers.update(extra_headers or {})

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for name, value in self.headers.items():
            response.headers.setdefault(name, value)

        if request.url.path.startswith(settings.API_PREFIX):
            response.headers.setdefault("Cache-Control", "no-store")

        return response
