"""Vision gateway FastAPI application."""
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.middleware.error_handler import ErrorHandlerMiddleware, ErrorResponse
from api.middleware.request_id import RequestIDMiddleware
from api.routes.health import HealthRouter
from api.routes.vision import VisionRouter


class VisionGatewayApp(FastAPI):
    """Vision gateway FastAPI application."""

    def __init__(
        self,
        lifespan: Optional[Callable] = None,
    ) -> None:
        """Initialize vision gateway application.

        Args:
            lifespan: Application lifespan manager
        """
        self._configured = False
        super().__init__(
            title="Vision Gateway",
            description="""
            # Vision Inference Gateway

            Accepts images and a prompt, forwards them to a vision model
            provider and returns the provider's answer, either as one JSON
            document or as an event stream with progress frames.
            """,
            version="0.1.0",  # Will be updated in configure()
            docs_url="/docs",
            redoc_url="/redoc",
            lifespan=lifespan,
        )

        # Dependencies will be set later
        self.state.logger = None
        self.state.settings = None
        self.state.normalizer = None
        self.state.dispatcher = None
        self.state.responder = None
        self.state.synthesizer_factory = None

    def configure(self) -> None:
        """Configure middleware and routes after dependencies are set."""
        if self._configured:
            raise RuntimeError("Application is already configured")

        if not all(
            [
                self.state.logger,
                self.state.settings,
                self.state.normalizer,
                self.state.dispatcher,
                self.state.responder,
                self.state.synthesizer_factory,
            ]
        ):
            raise RuntimeError("Dependencies must be set before configuring the app.")

        self.version = self.state.settings.VERSION

        app_logger = self.state.logger.get_logger(__name__)
        logger = self.state.logger
        settings = self.state.settings

        app_logger.info(
            "Configuring CORS middleware",
            extra={"allowed_origins": settings.BACKEND_CORS_ORIGINS},
        )
        self.add_middleware(
            CORSMiddleware,
            allow_origins=settings.BACKEND_CORS_ORIGINS,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
            max_age=86400,
        )

        # Last added runs first: request ID, then error handling, then CORS
        app_logger.info("Adding ErrorHandlerMiddleware")
        self.add_middleware(ErrorHandlerMiddleware, logger=logger, settings=settings)

        app_logger.info("Adding RequestIDMiddleware")
        self.add_middleware(RequestIDMiddleware, logger=logger, settings=settings)

        health_router = HealthRouter(logger=logger)
        self.include_router(health_router.router)

        app_logger.info("Registering VisionRouter")
        vision_router = VisionRouter(
            logger=logger,
            normalizer=self.state.normalizer,
            dispatcher=self.state.dispatcher,
            responder=self.state.responder,
            synthesizer_factory=self.state.synthesizer_factory,
        )
        self.include_router(vision_router.router)

        app_logger.info("Registering global exception handlers")
        self.add_exception_handler(HTTPException, self._http_exception_handler)

        app_logger.info(
            "Vision gateway configuration completed successfully",
            extra={
                "middleware_count": len(self.user_middleware),
                "router_count": len(self.router.routes),
            },
        )

        self._configured = True

    async def _http_exception_handler(
        self, request: Request, exc: HTTPException
    ) -> JSONResponse:  # type: ignore
        """Render framework HTTP errors (404, 405) in the gateway error format.

        Args:
            request: FastAPI request
            exc: HTTP exception

        Returns:
            JSON response with error details
        """
        self.state.logger.get_logger(__name__).warning(
            "HTTP error occurred",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "detail": exc.detail,
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse.create(code=exc.status_code, message=str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )
