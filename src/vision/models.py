"""Canonical vision request model."""
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from providers.constants import PROVIDER_BIGMODEL, PROVIDER_OPENROUTER
from providers.models import ImageDetail


class ProviderName(str, Enum):
    """Selectable upstream providers."""

    BIGMODEL = PROVIDER_BIGMODEL
    OPENROUTER = PROVIDER_OPENROUTER


class ThinkingMode(str, Enum):
    """Explicit extended-thinking switch; None on the request means unset."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class CanonicalRequest(BaseModel):
    """Provider-agnostic representation of one inbound vision request.

    Built once by the input normalizer and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    provider: Optional[ProviderName] = Field(
        default=None, description="Explicit provider, None means the default one"
    )
    model: Optional[str] = Field(
        default=None, description="Explicit model, None means resolve a default"
    )
    prompt_text: str = Field(default="", description="Prompt, may be empty")
    images: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="Image URLs or data URIs in upstream order",
    )
    detail_level: Optional[ImageDetail] = Field(
        default=None, description="Detail level applied to every image"
    )
    extended_thinking: Optional[ThinkingMode] = Field(
        default=None, description="Thinking switch, forwarded to BigModel only"
    )
    wants_stream: bool = Field(
        default=False, description="Whether the client asked for an event stream"
    )

    @field_validator("images")
    @classmethod
    def check_images(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Image references are never empty."""
        if any(not ref or not ref.strip() for ref in v):
            raise ValueError("Image references must not be empty")
        return v
