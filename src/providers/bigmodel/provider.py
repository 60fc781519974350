"""BigModel (GLM vision) provider implementation."""
from typing import Any, Dict

from core.logger import LoggerService
from vision.models import CanonicalRequest
from ..base import VisionProvider
from ..constants import PROVIDER_BIGMODEL
from ..models import ProviderConfig


class BigModelProvider(VisionProvider):
    """BigModel provider implementation.

    OpenAI-compatible chat completions with one extension: the GLM
    `thinking` switch, sent only when the client set it explicitly.
    """

    PROVIDER_ID = PROVIDER_BIGMODEL
    DEFAULT_MODEL = "glm-4.5v"

    def __init__(self, provider: ProviderConfig, logger: LoggerService) -> None:
        """Initialize BigModel provider.

        Args:
            provider: Provider config
            logger: Logger service instance
        """
        super().__init__(provider=provider, logger=logger)

    def provider_extra_fields(self, request: CanonicalRequest) -> Dict[str, Any]:
        """Add `thinking` only for an explicit enabled/disabled value."""
        if request.extended_thinking is None:
            return {}
        return {"thinking": {"type": request.extended_thinking.value}}
