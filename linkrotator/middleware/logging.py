"""
Logging Middleware for Request/Response Logging

Every request produces one log line on the "linkrotator.access" logger:
- Request method and path
- Response status code (307 redirects, 410 inactive rules, 429 denials)
- Processing time in milliseconds
- Client IP address, keyed the same way as the rate limiters
- Chosen destination, for redirects

Design Decisions:
- Uses Starlette's BaseHTTPMiddleware for compatibility
- Logs to standard Python logging; configure_logging() sets up the
  package logger once per process
"""

import logging
import time

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from linkrotator.core.rate_limit import get_client_ip

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("linkrotator.access")


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the package logger unless one exists."""
    package_logger = logging.getLogger("linkrotator")
    package_logger.setLevel(level.upper())
    
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log and X-Process-Time header for every request."""
    
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started
        
        message = (
            f"{request.method} {request.url.path} {response.status_code} "
            f"{elapsed * 1000:.2f}ms IP:{get_client_ip(request)}"
        )
        location = response.headers.get("location")
        if location:
            message += f" -> {location}"
        
        if response.status_code >= 500:
            logger.error(message)
        else:
            logger.info(message)
        
        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response


def add_logging_middleware(app: FastAPI) -> None:
    app.add_middleware(LoggingMiddleware)
