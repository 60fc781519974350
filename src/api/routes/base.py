"""Base router implementation."""
from abc import ABC, abstractmethod
from typing import List, Optional

from fastapi import APIRouter, Request

from core.logger import LoggerService


class BaseRouter(ABC):
    """Base class for the gateway's routers."""

    def __init__(
        self,
        logger: LoggerService,
        prefix: str = "",
        tags: List[str] | None = None,
    ):
        """Initialize router.

        Args:
            logger: Logger service instance
            prefix: URL prefix for all routes
            tags: OpenAPI tags for documentation
        """
        if not logger:
            raise ValueError("Logger service is required")

        self.logger = logger.get_logger(__name__)
        self.router = APIRouter(prefix=prefix, tags=tags or [])
        self._setup_routes()

    @abstractmethod
    def _setup_routes(self) -> None:
        """Register endpoints on `self.router`."""

    @staticmethod
    def request_id(request: Request) -> Optional[str]:
        """Request ID assigned by RequestIDMiddleware, if any."""
        return getattr(request.state, "request_id", None)

    @property
    def routes(self) -> APIRouter:
        return self.router
