"""Provider constants and configuration."""
from typing import Dict

# Provider IDs
PROVIDER_BIGMODEL = "bigmodel"
PROVIDER_OPENROUTER = "openrouter"

# Provider names for display
PROVIDER_NAMES: Dict[str, str] = {
    PROVIDER_BIGMODEL: "BigModel",
    PROVIDER_OPENROUTER: "OpenRouter",
}
