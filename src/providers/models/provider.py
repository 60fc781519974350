"""Provider models."""

from pydantic import BaseModel, ConfigDict, Field


class ProviderConfig(BaseModel):
    """Provider configuration."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    provider_id: str = Field(
        description="Unique identifier for the provider (e.g., 'bigmodel', 'openrouter')"
    )
    name: str = Field(description="Human-readable name of the provider")
    credentials: str = Field(
        description="Authentication credentials or API key for the provider"
    )
    parameters: dict = Field(
        default_factory=dict,
        description="Additional configuration parameters specific to the provider "
        "(e.g., timeout, SSL verification)",
    )
    base_url: str = Field(description="Base URL for the provider's API endpoint")
