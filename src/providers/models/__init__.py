"""Provider models package."""

from .errors import (
    ProviderDisabled,
    ProviderError,
    ProviderNotConfigured,
    UpstreamUnavailable,
)
from .messages import (
    ContentType,
    ImageDetail,
    ImageUrl,
    ImageUrlContent,
    TextContent,
    UpstreamPayload,
    UserMessage,
)
from .provider import ProviderConfig

__all__ = [
    "ContentType",
    "ImageDetail",
    "ImageUrl",
    "ImageUrlContent",
    "ProviderConfig",
    "ProviderDisabled",
    "ProviderError",
    "ProviderNotConfigured",
    "TextContent",
    "UpstreamPayload",
    "UpstreamUnavailable",
    "UserMessage",
]
