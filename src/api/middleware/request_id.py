"""Middleware for adding request ID and logging requests/responses."""
import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.logger import LoggerService
from core.settings import Settings

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware:
    """Assigns a request ID, echoes it in the response and logs timings."""

    # Seconds; streamed responses are exempt
    SLOW_REQUEST_THRESHOLD = 1.0

    def __init__(
        self,
        app: ASGIApp,
        logger: LoggerService,
        settings: Settings,
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application
            logger: Logger service for request/response logging
            settings: Settings instance
        """
        self.app = app
        self.logger = logger.get_logger(__name__)
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid4())
        request.state.request_id = request_id

        self.logger.info(
            "Incoming request",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "content_type": request.headers.get("content-type", "unknown"),
                "content_length": request.headers.get("content-length", "0"),
                "client": request.client.host if request.client else None,
            },
        )

        start_time = time.time()
        status_code: Optional[int] = None
        streamed = False

        async def send_with_request_id(message: Message) -> None:
            nonlocal status_code, streamed
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id
                status_code = message["status"]
                streamed = headers.get("content-type", "").startswith(
                    "text/event-stream"
                )
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        except Exception as e:
            self.logger.error(
                "Request failed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "process_time_seconds": time.time() - start_time,
                },
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        if not streamed and process_time > self.SLOW_REQUEST_THRESHOLD:
            self.logger.warning(
                "Slow request detected",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "process_time_seconds": process_time,
                },
            )

        self.logger.info(
            "Request completed",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "streamed": streamed,
                "process_time_seconds": process_time,
            },
        )
