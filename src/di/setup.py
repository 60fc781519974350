"""FastAPI dependency injection setup."""
from typing import Any, Callable, Dict, Optional, Type

from fastapi import FastAPI

from core.logger import LoggerService
from core.settings import Settings
from providers.factory import ProviderFactory
from providers.manager import ProviderManager
from vision.dispatcher import Dispatcher
from vision.normalizer import InputNormalizer
from vision.responder import NonStreamResponder

from .dependencies import Container, container as default_container


def setup_di(app: FastAPI, container: Optional[Container] = None) -> None:
    """Setup dependency injection for FastAPI application.

    Args:
        app: FastAPI application instance
        container: Container to use, the module-level one by default

    Raises:
        RuntimeError: If DI configuration fails
    """
    container = container or default_container
    logger = container.logger().get_logger(__name__)
    try:
        logger.info("Starting dependency injection configuration")

        app.state.container = container
        dependencies = get_di_dependencies(container)
        for dependency_type, provider in dependencies.items():
            app.dependency_overrides[dependency_type] = _resolver(provider)
            logger.debug(
                "Registered dependency",
                extra={"dependency": dependency_type.__name__},
            )

        logger.info("Dependency injection configuration completed successfully")
    except Exception as e:
        logger.error(
            "Failed to configure dependency injection",
            extra={"error": str(e)},
            exc_info=True,
        )
        cleanup_di(app, container)
        raise RuntimeError("Dependency injection configuration failed") from e


def cleanup_di(app: Optional[FastAPI] = None, container: Optional[Container] = None) -> None:
    """Cleanup dependency injection resources.

    This function is safe to call multiple times and will not raise exceptions.
    """
    container = container or default_container
    logger = container.logger().get_logger(__name__)
    try:
        logger.info("Starting dependency injection cleanup")

        container.shutdown_resources()
        container.reset_singletons()

        if app:
            app.dependency_overrides.clear()

        logger.info("Dependency injection cleanup completed successfully")
    except Exception as e:
        logger.error(
            "Error during DI cleanup",
            extra={"error": str(e)},
            exc_info=True,
        )


def get_di_dependencies(container: Container) -> Dict[Type[Any], Callable[[], Any]]:
    """Map dependency types to their container providers.

    Returns:
        Dict[Type[Any], Callable[[], Any]]: Dictionary mapping types to providers
    """
    return {
        # Core services
        Settings: container.settings,
        LoggerService: container.logger,
        # Provider services
        ProviderFactory: container.provider_factory,
        ProviderManager: container.provider_manager,
        # Vision pipeline
        InputNormalizer: container.normalizer,
        Dispatcher: container.dispatcher,
        NonStreamResponder: container.responder,
    }


def _resolver(provider: Callable[[], Any]) -> Callable[[], Any]:
    # FastAPI introspects override signatures; container providers have none
    def resolve() -> Any:
        return provider()

    return resolve
