"""Structured JSON request logging middleware for the BlockSafe API.

:class:`RequestLoggingMiddleware` records every HTTP request as a structured
JSON log entry at ``INFO`` level, enriched with:

* A **correlation ID** — propagated from the incoming ``X-Correlation-ID``
  (or ``X-Request-ID``) header, or generated as a UUID v4 when absent.
* Request metadata: HTTP method, URL path, response status code, and wall-clock
  duration in milliseconds.
* For sanitize requests, a ``sanitize`` object (format, extension, replaced
  block count or error code) taken from ``request.state.sanitize_summary``
  when the route attached one.

The correlation ID is also stored on ``request.state.correlation_id`` for
downstream handlers and echoed back in the ``X-Correlation-ID`` response
header.

Log entry format
----------------
::

    {
      "event": "http_request",
      "correlation_id": "550e8400-e29b-41d4-a716-446655440000",
      "method": "POST",
      "path": "/v1/sanitize",
      "status_code": 200,
      "duration_ms": 12.4,
      "sanitize": {"format": "abc", "extension": ".abc", "replaced_blocks": 1}
    }
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

# Headers checked (in priority order) for an incoming correlation ID.
_CORRELATION_HEADERS: tuple[str, ...] = ("x-correlation-id", "x-request-id")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Structured JSON per-request logging middleware.

    The correlation ID is:

    * Read from ``X-Correlation-ID`` or ``X-Request-ID`` request headers
      (first match wins).
    * Generated as a UUID v4 when no recognised header is present.
    * Written to ``request.state.correlation_id`` for downstream use.
    * Echoed in the ``X-Correlation-ID`` response header.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = self._extract_correlation_id(request)
        request.state.correlation_id = correlation_id

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        log_entry = {
            "event": "http_request",
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
        summary = getattr(request.state, "sanitize_summary", None)
        if summary:
            log_entry["sanitize"] = summary
        logger.info(json.dumps(log_entry))

        response.headers["X-Correlation-ID"] = correlation_id
        return response

    @staticmethod
    def _extract_correlation_id(request: Request) -> str:
        """Return a correlation ID for *request*.

        Checks ``X-Correlation-ID`` then ``X-Request-ID`` headers.  If neither
        is present, a fresh UUID v4 string is generated.
        """
        for header in _CORRELATION_HEADERS:
            value = request.headers.get(header, "").strip()
            if value:
                return value
        return str(uuid.uuid4())
