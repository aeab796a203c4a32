"""
ASGI middleware that logs every API request with its status and duration.

Pure ASGI (not BaseHTTPMiddleware), so response bodies pass through
untouched. Request bodies are logged at DEBUG only, truncated.
"""

import logging
import time
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import truncate_large_data

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """Logs request start and completion for HTTP scopes."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        """
        Args:
            app: The ASGI application
            exclude_paths: Paths that are not logged (e.g. ["/"])
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return

        start_time = time.time()
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        client = scope.get("client")
        fields = {
            "request_id": id(scope),
            "method": method,
            "path": path,
            "client": client[0] if client else None,
        }

        body_chunks = []
        status_code = 0

        async def logging_receive() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                body_chunks.append(message.get("body", b""))
            return message

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            await send(message)

        logger.info(f"Request started: {method} {path}", extra={"extra_fields": fields})

        try:
            await self.app(scope, logging_receive, logging_send)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {method} {path} - {str(e)}",
                exc_info=True,
                extra={"extra_fields": {**fields, "duration_ms": round(duration_ms, 2)}}
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        if logger.isEnabledFor(logging.DEBUG) and body_chunks:
            body = b"".join(body_chunks).decode("utf-8", errors="ignore")
            if body:
                logger.debug(f"Request body: {truncate_large_data(body, max_length=2000)}")

        if status_code < 400:
            log_level = logging.INFO
        elif status_code < 500:
            log_level = logging.WARNING
        else:
            log_level = logging.ERROR

        logger.log(
            log_level,
            f"Request completed: {method} {path} - {status_code} ({duration_ms:.2f}ms)",
            extra={"extra_fields": {
                **fields,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            }}
        )
