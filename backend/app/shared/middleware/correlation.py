"""
Request Middleware

Correlation ID handling for HTTP requests. Automation runs started by a
trigger request log under their own run- id, which is returned in the run
summary; the response header carries the request id.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.shared.core.logging import set_correlation_id

CORRELATION_HEADER = "X-Request-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Assigns a req-xxxxxxxx id to each request, or reuses an incoming
    X-Request-ID (e.g. from the cron runner), and echoes it back.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = set_correlation_id(request.headers.get(CORRELATION_HEADER))

        response = await call_next(request)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
