"""
Logging middleware

Records method, path, duration and status for every request, tagged with a
trace id taken from ``X-Request-ID`` or generated.
"""
# mypy: ignore-errors

import os
import time
import uuid
from collections.abc import Callable
from typing import Optional

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | trace_id={extra[trace_id]} | "
    "{extra[method]} {extra[path]} | {name}:{function}:{line} | {message}"
)


class LoggingMiddleware(BaseHTTPMiddleware):
    """HTTP request log middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"

        trace_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.trace_id = trace_id
        log = logger.bind(trace_id=trace_id, method=method, path=path, client=client_host)

        log.info("request.start")

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            status_code = response.status_code
            message = f"request.completed status={status_code} duration={process_time:.3f}s"

            if status_code >= 500:
                log.error(message)
            elif status_code >= 400:
                log.warning(message)
            else:
                log.info(message)

            response.headers["X-Process-Time"] = f"{process_time:.6f}"
            response.headers["X-Trace-Id"] = trace_id
            return response

        except Exception as e:
            process_time = time.time() - start_time
            log.opt(exception=True).error(f"request.failed duration={process_time:.3f}s error={type(e).__name__}")
            raise


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None):
    """
    Configure loguru.

    Console output always; rotated files under ``log_dir`` when it is set
    and writable.
    """
    logger.configure(extra={"trace_id": "-", "method": "-", "path": "-", "client": "-"})
    logger.remove()

    logger.add(
        sink=lambda msg: print(msg, end=""),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "trace_id={extra[trace_id]} | "
            "{extra[method]} {extra[path]} | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=level.upper(),
        colorize=True,
    )

    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            logger.add(
                os.path.join(log_dir, "authgate.log"),
                rotation="100 MB",
                retention="30 days",
                compression="zip",
                format=LOG_FORMAT,
                level=level.upper(),
            )
            logger.add(
                os.path.join(log_dir, "error.log"),
                rotation="50 MB",
                retention="30 days",
                compression="zip",
                format=LOG_FORMAT,
                level="ERROR",
            )
        except OSError as e:
            logger.warning(f"File logging disabled, console only: {e}")

    logger.info("Logging configured")
