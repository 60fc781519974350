"""Vision gateway FastAPI application entry point."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI

from app import VisionGatewayApp
from core.settings import settings
from di import Container, container as default_container
from di.setup import cleanup_di, setup_di


@asynccontextmanager
async def lifespan(app: VisionGatewayApp) -> AsyncGenerator[None, None]:
    """Manage application lifespan.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    app_logger = app.state.logger.get_logger(__name__)
    app_logger.info(
        "Application started",
        extra={
            "environment": app.state.settings.ENVIRONMENT,
            "default_provider": app.state.settings.DEFAULT_PROVIDER,
        },
    )

    try:
        yield
    finally:
        app_logger.info("Shutting down application")
        cleanup_di(app, app.state.container)


def init_app(container: Optional[Container] = None) -> FastAPI:
    """Initialize FastAPI application.

    Args:
        container: DI container, the module-level one by default
    """
    container = container or default_container
    app = VisionGatewayApp(lifespan=lifespan)

    setup_di(app, container)

    app.state.logger = container.logger()
    app.state.settings = container.settings()
    app.state.normalizer = container.normalizer()
    app.state.dispatcher = container.dispatcher()
    app.state.responder = container.responder()
    app.state.synthesizer_factory = container.stream_synthesizer

    app.configure()

    return app


def get_app() -> FastAPI:
    """Factory function to create the FastAPI app."""
    return init_app()


if __name__ == "__main__":
    uvicorn.run(
        init_app(),
        host=settings.HOST,
        port=int(settings.PORT),
    )
