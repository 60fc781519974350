"""Message and payload models for upstream vision requests."""
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """Content type constants."""

    TEXT = "text"
    IMAGE_URL = "image_url"


class ImageDetail(str, Enum):
    """Image detail level constants."""

    AUTO = "auto"
    LOW = "low"
    HIGH = "high"


class TextContent(BaseModel):
    """Text content part model."""

    model_config = ConfigDict(frozen=True)

    type: Literal[ContentType.TEXT] = Field(
        ContentType.TEXT,
        description="The type of content, in this case text",
    )
    text: str = Field(description="The text content")


class ImageUrl(BaseModel):
    """Image URL model."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(
        description="Either a URL of the image or a base64 data URI"
    )
    detail: Optional[ImageDetail] = Field(
        default=None,
        description="Specifies the detail level of the image",
    )


class ImageUrlContent(BaseModel):
    """Image URL content part model."""

    model_config = ConfigDict(frozen=True)

    type: Literal[ContentType.IMAGE_URL] = Field(
        ContentType.IMAGE_URL,
        description="The type of content, in this case image_url",
    )
    image_url: ImageUrl = Field(description="The image data")


ContentPart = Union[TextContent, ImageUrlContent]


class UserMessage(BaseModel):
    """Single user turn carrying the multi-modal content."""

    model_config = ConfigDict(frozen=True)

    role: Literal["user"] = "user"
    content: Tuple[ContentPart, ...] = Field(default_factory=tuple)


class UpstreamPayload(BaseModel):
    """Provider-specific request body, built once per inbound request."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(description="Resolved upstream model id")
    messages: Tuple[UserMessage, ...] = Field(description="Conversation turns")
    stream: bool = Field(description="Whether the upstream should stream")
    extra_fields: Dict[str, Any] = Field(
        default_factory=dict,
        description="Provider-only top-level fields (e.g., thinking)",
    )

    def to_body(self) -> Dict[str, Any]:
        """Render the JSON body sent to the upstream endpoint."""
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                message.model_dump(mode="json", exclude_none=True)
                for message in self.messages
            ],
        }
        body.update(self.extra_fields)
        body["stream"] = self.stream
        return body
