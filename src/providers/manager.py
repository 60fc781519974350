"""Provider manager implementation."""
from core.logger import LoggerService
from core.settings import Settings
from .base import VisionProvider
from .constants import PROVIDER_BIGMODEL, PROVIDER_NAMES, PROVIDER_OPENROUTER
from .factory import ProviderFactory
from .models import (
    ProviderConfig,
    ProviderDisabled,
    ProviderError,
    ProviderNotConfigured,
)


class ProviderManager:
    """Builds provider adapters from static settings."""

    def __init__(
        self,
        logger: LoggerService,
        settings: Settings,
        provider_factory: ProviderFactory,
    ) -> None:
        """Initialize provider manager.

        Args:
            logger: Logger service instance for logging operations
            settings: Application settings for configuration
            provider_factory: Factory for creating provider instances
        """
        self.logger = logger.get_logger(__name__)
        self.settings = settings
        self.provider_factory = provider_factory

    @property
    def default_provider(self) -> str:
        """Provider used when the request does not name one."""
        return self.settings.DEFAULT_PROVIDER

    def _is_provider_enabled(self, provider_alias: str) -> bool:
        """Check if provider is enabled by feature toggle.

        Args:
            provider_alias: Provider alias

        Returns:
            bool: True if provider is enabled, False otherwise
        """
        toggle_map = {
            PROVIDER_BIGMODEL: self.settings.ENABLE_BIGMODEL,
            PROVIDER_OPENROUTER: self.settings.ENABLE_OPENROUTER,
        }
        return bool(toggle_map.get(provider_alias, False))

    def _get_credentials_from_settings(self, provider_alias: str) -> str:
        credentials_registry = {
            PROVIDER_BIGMODEL: self.settings.BIGMODEL_API_KEY,
            PROVIDER_OPENROUTER: self.settings.OPENROUTER_API_KEY,
        }
        return credentials_registry.get(provider_alias, "")

    def _get_base_url_from_settings(self, provider_alias: str) -> str:
        base_url_map = {
            PROVIDER_BIGMODEL: self.settings.BIGMODEL_BASE_URL,
            PROVIDER_OPENROUTER: self.settings.OPENROUTER_BASE_URL,
        }
        return base_url_map.get(provider_alias, "")

    def _get_parameters_from_settings(self, provider_alias: str) -> dict:
        """Get provider parameters from settings.

        Args:
            provider_alias: Provider alias

        Returns:
            Provider parameters from settings
        """
        params = {
            "timeout": self.settings.PROVIDER_TIMEOUT,
            "verify_ssl": not self.settings.DISABLE_SSL_VERIFICATION,
        }

        if provider_alias == PROVIDER_OPENROUTER:
            params.update(
                {
                    "app_url": self.settings.APP_URL,
                    "app_title": self.settings.APP_TITLE,
                }
            )

        return params

    def get_provider_config(self, provider_alias: str) -> ProviderConfig:
        """Get provider configuration by alias.

        Args:
            provider_alias: Provider alias (e.g. 'bigmodel', 'openrouter')

        Returns:
            Provider configuration

        Raises:
            ProviderError: If provider is unknown, disabled or has no API key
        """
        if provider_alias not in PROVIDER_NAMES:
            raise ProviderError(
                code=400,
                message=f"Unsupported provider: {provider_alias}",
                details={"provider_alias": provider_alias},
            )

        if not self._is_provider_enabled(provider_alias):
            self.logger.error(
                f"Provider {provider_alias} is disabled by feature toggle",
                extra={"provider_alias": provider_alias},
            )
            raise ProviderDisabled(provider_alias)

        credentials = self._get_credentials_from_settings(provider_alias)
        if not credentials:
            self.logger.error(
                f"Provider {provider_alias} has no API key configured",
                extra={"provider_alias": provider_alias},
            )
            raise ProviderNotConfigured(provider_alias)

        return ProviderConfig(
            provider_id=provider_alias,
            name=PROVIDER_NAMES[provider_alias],
            credentials=credentials,
            parameters=self._get_parameters_from_settings(provider_alias),
            base_url=self._get_base_url_from_settings(provider_alias),
        )

    def get_provider(self, provider_alias: str) -> VisionProvider:
        """Build a provider adapter for one request.

        Args:
            provider_alias: Provider alias

        Returns:
            Provider adapter instance
        """
        provider_config = self.get_provider_config(provider_alias)
        provider = self.provider_factory.create(provider_config)
        self.logger.info(
            "Found provider",
            extra={
                "provider_id": provider_config.provider_id,
                "base_url": provider_config.base_url,
            },
        )
        return provider
