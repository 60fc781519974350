"""Error models for the gateway.

Every error the gateway raises derives from ProviderError so the error
handling middleware can render it with its own status code.
"""
from typing import Any, Dict, Optional


class ProviderError(Exception):
    """Gateway error with an HTTP status code and details."""

    def __init__(
        self,
        code: int,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize provider error.

        Args:
            code: HTTP status code
            message: Error message
            details: Optional error details
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ProviderDisabled(ProviderError):
    """Provider is switched off by feature toggle."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(
            code=403,
            message=f"Provider {provider_id} is disabled by feature toggle",
            details={"provider_id": provider_id},
        )


class ProviderNotConfigured(ProviderError):
    """Provider has no credentials configured."""

    def __init__(self, provider_id: str) -> None:
        super().__init__(
            code=503,
            message=f"Provider {provider_id} is not configured",
            details={"provider_id": provider_id, "error": "Missing API key"},
        )


class UpstreamUnavailable(ProviderError):
    """Upstream could not be reached for a single-response request."""

    def __init__(self, provider_id: str, error: str) -> None:
        super().__init__(
            code=502,
            message=f"{provider_id} API is unreachable",
            details={"provider_id": provider_id, "error": error},
        )
