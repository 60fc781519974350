"""Provider factory implementation."""
from typing import Dict, Type

from core.logger import LoggerService
from .base import VisionProvider
from .bigmodel import BigModelProvider
from .constants import PROVIDER_BIGMODEL, PROVIDER_OPENROUTER
from .models import ProviderConfig, ProviderError
from .openrouter import OpenRouterProvider


class ProviderFactory:
    """Factory for creating provider instances."""

    PROVIDERS: Dict[str, Type[VisionProvider]] = {
        PROVIDER_BIGMODEL: BigModelProvider,
        PROVIDER_OPENROUTER: OpenRouterProvider,
    }

    def __init__(self, logger: LoggerService) -> None:
        """Initialize provider factory.

        Args:
            logger: Logger service instance
        """
        self.logger = logger.get_logger(__name__)
        self.instance_logger = logger

    def create(self, provider: ProviderConfig) -> VisionProvider:
        """Create provider instance.

        Args:
            provider: Provider configuration

        Returns:
            Provider instance

        Raises:
            ProviderError: If provider is not supported
        """
        provider_class = self.PROVIDERS.get(provider.provider_id)
        if provider_class is None:
            error_msg = f"Unsupported provider: {provider.provider_id}"
            self.logger.error(error_msg)
            raise ProviderError(
                code=400,
                message=error_msg,
                details={"provider_id": provider.provider_id},
            )

        self.logger.debug(
            f"Creating provider instance for: {provider.provider_id}",
            extra={"provider_class": provider_class.__name__},
        )
        return provider_class(provider=provider, logger=self.instance_logger)
