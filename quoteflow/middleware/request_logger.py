# quoteflow/middleware/request_logger.py
import logging
import re
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# public quote URLs carry the access token; keep it out of the logs
_PUBLIC_TOKEN_RE = re.compile(r"^(/public/quotes/)[^/]+")


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = round((time.perf_counter() - started) * 1000, 1)

        user = getattr(request.state, "user", None)
        username = getattr(user, "username", None) if user else None
        path = _PUBLIC_TOKEN_RE.sub(r"\1<token>", request.url.path)

        logger.info(
            "%s %s -> %s (%sms)", request.method, path, response.status_code, duration_ms,
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "user": username,
            },
        )
        return response
