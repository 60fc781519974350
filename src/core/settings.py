"""Application settings."""
import json
from typing import Annotated, List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_ALLOWED_ORIGINS: List[str] = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )
    """Application settings."""

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Project
    PROJECT_NAME: str = "vision-gateway"
    VERSION: str = "0.1.0"

    # Host
    HOST: str = "0.0.0.0"
    PORT: int = 8787

    # CORS
    BACKEND_CORS_ORIGINS: Annotated[List[str], NoDecode] = DEFAULT_ALLOWED_ORIGINS.copy()

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        """Validate CORS origins."""
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, str):
            return [str(item) for item in json.loads(v)]
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # Provider selection
    DEFAULT_PROVIDER: str = "bigmodel"
    DEFAULT_MODEL: str = ""  # Applies to whichever provider is selected

    @field_validator("DEFAULT_PROVIDER")
    @classmethod
    def check_default_provider(cls, v: str) -> str:
        """Only the two known vision providers can be the default."""
        v = v.strip().lower()
        if v not in ("bigmodel", "openrouter"):
            raise ValueError(f"Unsupported default provider: {v}")
        return v

    # Provider Settings
    PROVIDER_TIMEOUT: int = 300  # seconds, streaming responses can be slow
    DISABLE_SSL_VERIFICATION: bool = False

    # Feature Flags
    ENABLE_BIGMODEL: bool = True
    ENABLE_OPENROUTER: bool = True

    # BigModel Settings
    BIGMODEL_API_KEY: str = ""
    BIGMODEL_BASE_URL: str = "https://open.bigmodel.cn/api/paas/v4"

    # OpenRouter Settings
    OPENROUTER_API_KEY: str = ""
    OPENROUTER_BASE_URL: str = "https://openrouter.ai/api/v1"
    APP_URL: str = ""  # HTTP-Referer attribution header
    APP_TITLE: str = ""  # X-Title attribution header

    # Input limits
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024

    # Stream synthesis
    STREAM_HEARTBEAT_INTERVAL: float = 10.0
    STREAM_SOFT_PROGRESS_INTERVAL: float = 0.3
    STREAM_ESTIMATED_TOTAL_SECONDS: float = 12.0
    STREAM_TAIL_CEILING: float = 0.9
    STREAM_PROGRESS_MIN_DELTA: float = 0.02
    STREAM_PROGRESS_MIN_INTERVAL: float = 0.5

    @field_validator("STREAM_TAIL_CEILING")
    @classmethod
    def check_tail_ceiling(cls, v: float) -> float:
        """Tail ceiling is a fraction below full completion."""
        if not 0.0 < v < 1.0:
            raise ValueError("STREAM_TAIL_CEILING must be between 0 and 1")
        return v

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # Available formats: json, text
    LOG_EXTRA_FIELDS: list[str] = []  # Additional fields for logs


settings = Settings()
