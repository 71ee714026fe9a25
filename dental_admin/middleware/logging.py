"""Logging middleware and configuration."""

import logging
import sys
import time
import uuid
from collections.abc import Callable

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from dental_admin.config import Settings, settings

# Probed by orchestrators and scrapers every few seconds
QUIET_PATHS = frozenset({
    "/metrics",
    f"{settings.api_v1_prefix}/health",
    f"{settings.api_v1_prefix}/ping",
})


def configure_logging(config: Settings | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        config: Settings override; ``LOG_FORMAT=json`` renders JSON lines,
            anything else the console renderer
    """
    config = config or settings
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if config.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.log_level.upper(), logging.INFO),
    )
    # Calls to the clinic API are logged by ApiClient with their own events
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _session_tag(request: Request) -> str | None:
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not credentials:
        return None
    return credentials[:8]


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Bind a request id and the operator session to every log line of a request.

    The request id is taken from ``X-Request-ID`` when the browser sends one
    and echoed back. Services log through structlog's context variables, so
    their events carry both ids without passing them around.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger = structlog.get_logger()
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        session_tag = _session_tag(request)
        if session_tag:
            structlog.contextvars.bind_contextvars(session_id=session_tag)

        path = request.url.path
        quiet = path in QUIET_PATHS
        start_time = time.perf_counter()
        if not quiet:
            logger.info("request_started", method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=path,
                error=str(e),
                duration_ms=round((time.perf_counter() - start_time) * 1000, 1),
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 1)
        if response.status_code >= 500:
            log = logger.error
        elif response.status_code >= 400:
            log = logger.warning
        elif quiet:
            log = logger.debug
        else:
            log = logger.info
        log(
            "request_completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time-Ms"] = str(duration_ms)
        return response
