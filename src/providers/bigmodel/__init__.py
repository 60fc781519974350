"""BigModel provider package."""

from .provider import BigModelProvider

__all__ = [
    "BigModelProvider",
]
