"""OpenRouter provider implementation."""
from typing import Dict

from core.logger import LoggerService
from ..base import VisionProvider
from ..constants import PROVIDER_OPENROUTER
from ..models import ProviderConfig


class OpenRouterProvider(VisionProvider):
    """OpenRouter provider implementation.

    Thinking switches are not forwarded. Requests carry the optional
    attribution headers (HTTP-Referer, X-Title) from static configuration.
    """

    PROVIDER_ID = PROVIDER_OPENROUTER
    DEFAULT_MODEL = "qwen/qwen2.5-vl-72b-instruct"

    def __init__(self, provider: ProviderConfig, logger: LoggerService) -> None:
        """Initialize OpenRouter provider.

        Args:
            provider: Provider config
            logger: Logger service instance
        """
        super().__init__(provider=provider, logger=logger)

    def request_headers(self, stream: bool) -> Dict[str, str]:
        """Get headers for API request."""
        headers = super().request_headers(stream)
        app_url = self._provider.parameters.get("app_url")
        app_title = self._provider.parameters.get("app_title")
        if app_url:
            headers["HTTP-Referer"] = app_url
        if app_title:
            headers["X-Title"] = app_title
        return headers
