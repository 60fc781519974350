"""Base provider interface."""
from abc import ABC
from typing import Any, Dict, List, Optional

from core.logger import LoggerService
from vision.models import CanonicalRequest
from .models import (
    ImageUrl,
    ImageUrlContent,
    ProviderConfig,
    TextContent,
    UpstreamPayload,
    UserMessage,
)
from .models.messages import ContentPart


class VisionProvider(ABC):
    """Base class for vision providers.

    A provider knows its upstream endpoint, how to authenticate against it,
    and how to turn a canonical request into its own payload. Subclasses only
    override the hooks for provider-specific fields and headers.
    """

    PROVIDER_ID: str = ""
    DEFAULT_MODEL: str = ""
    COMPLETIONS_PATH = "/chat/completions"

    def __init__(self, provider: ProviderConfig, logger: LoggerService) -> None:
        """Initialize provider.

        Args:
            provider: Provider configuration
            logger: Logger service instance
        """
        self._provider = provider
        self.logger = logger.get_logger(__name__)

    @property
    def provider_id(self) -> str:
        """Provider identifier."""
        return self._provider.provider_id

    @property
    def config(self) -> ProviderConfig:
        """Provider configuration."""
        return self._provider

    def endpoint(self) -> str:
        """Upstream chat completions URL."""
        return f"{self._provider.base_url.rstrip('/')}{self.COMPLETIONS_PATH}"

    def auth_header(self, secret: Optional[str] = None) -> Dict[str, str]:
        """Bearer authorization header.

        Args:
            secret: API key, defaults to the configured credentials
        """
        token = secret if secret is not None else self._provider.credentials
        return {"Authorization": f"Bearer {token}"}

    def request_headers(self, stream: bool) -> Dict[str, str]:
        """Headers for the upstream POST."""
        headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        headers.update(self.auth_header())
        return headers

    def resolve_model(self, request: CanonicalRequest, default_model: str = "") -> str:
        """Resolve the upstream model.

        Order: explicit request model, configured default model, then the
        provider's hard-coded fallback.
        """
        if request.model and request.model.strip():
            return request.model.strip()
        if default_model and default_model.strip():
            return default_model.strip()
        return self.DEFAULT_MODEL

    def build_messages(self, request: CanonicalRequest) -> List[UserMessage]:
        """Build the single user turn, images first in their original order."""
        content: List[ContentPart] = [
            ImageUrlContent(image_url=ImageUrl(url=ref, detail=request.detail_level))
            for ref in request.images
        ]
        if request.prompt_text.strip():
            content.append(TextContent(text=request.prompt_text))
        return [UserMessage(content=tuple(content))]

    def provider_extra_fields(self, request: CanonicalRequest) -> Dict[str, Any]:
        """Top-level payload fields only this provider understands."""
        return {}

    def build_payload(
        self, request: CanonicalRequest, default_model: str = ""
    ) -> UpstreamPayload:
        """Map a canonical request to this provider's upstream payload.

        Args:
            request: Canonical request
            default_model: Configured default model, may be empty

        Returns:
            Immutable upstream payload
        """
        payload = UpstreamPayload(
            model=self.resolve_model(request, default_model),
            messages=tuple(self.build_messages(request)),
            stream=request.wants_stream,
            extra_fields=self.provider_extra_fields(request),
        )
        self.logger.debug(
            "Built upstream payload",
            extra={
                "provider_id": self.provider_id,
                "model": payload.model,
                "images_count": len(request.images),
                "has_prompt": bool(request.prompt_text.strip()),
                "stream": payload.stream,
                "extra_fields": sorted(payload.extra_fields),
            },
        )
        return payload
