"""OpenRouter provider package."""

from .provider import OpenRouterProvider

__all__ = [
    "OpenRouterProvider",
]
