"""Error handling middleware."""
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.logger import LoggerService
from core.settings import Settings
from providers.models import ProviderError


class ErrorResponse:
    """Error response body shared by every gateway error."""

    @staticmethod
    def create(
        code: int,
        message: str,
        details: Optional[dict] = None,
    ) -> dict:
        """Create error response.

        Args:
            code: HTTP status code
            message: Error message
            details: Optional error details

        Returns:
            Error response dictionary
        """
        return {
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        }


class ErrorHandlerMiddleware:
    """Renders uncaught exceptions as JSON error responses.

    Error response format:
    {
        "error": {
            "code": number,
            "message": string,
            "details": {
                "field"?: string,
                "provider_id"?: string,
                "media_type"?: string,
                "size"?: number,
                "limit"?: number,
                "error"?: string
            }
        }
    }

    Once a response has started (an event stream), the status is committed
    and errors are re-raised instead; streams report their own failures
    in-band.
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: LoggerService,
        settings: Settings,
    ) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application
            logger: Logger service
            settings: Application settings
        """
        self.app = app
        self.logger = logger.get_logger(__name__)
        self.settings = settings

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope, receive)
        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, tracking_send)
            return

        except ProviderError as e:
            if response_started:
                raise
            log = self.logger.warning if e.code < 500 else self.logger.error
            log(
                "Gateway error",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "path": request.url.path,
                    "method": request.method,
                    "error_code": e.code,
                    "error_message": e.message,
                    "error_details": e.details,
                },
            )
            response = JSONResponse(
                status_code=e.code,
                content=ErrorResponse.create(
                    code=e.code,
                    message=e.message,
                    details=e.details,
                ),
            )
            await response(scope, receive, send)
            return

        except Exception as e:
            if response_started:
                raise
            self.logger.error(
                "Unexpected error",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "path": request.url.path,
                    "method": request.method,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            response = JSONResponse(
                status_code=500,
                content=ErrorResponse.create(
                    code=500,
                    message="Internal server error",
                    details={"error": str(e)},
                ),
            )
            await response(scope, receive, send)
            return
