"""Health check router implementation."""
from typing import Dict

from fastapi import Request

from .base import BaseRouter
from core.logger import LoggerService


class HealthRouter(BaseRouter):
    """Liveness endpoint."""

    def __init__(self, logger: LoggerService):
        """Initialize router.

        Args:
            logger: Logger service instance
        """
        super().__init__(logger=logger, tags=["health"])
        self.logger = logger.get_logger(__name__)

    def _setup_routes(self) -> None:
        self.router.add_api_route(
            "/healthz",
            self.health_check,
            methods=["GET"],
            response_model=Dict[str, bool],
            summary="Health Check",
            description="Liveness probe; does not contact any provider.",
            operation_id="get_health_status",
            responses={
                200: {
                    "description": "Service is alive",
                    "content": {"application/json": {"example": {"ok": True}}},
                }
            },
        )

    async def health_check(self, request: Request) -> Dict[str, bool]:
        self.logger.debug(
            "Health check requested",
            extra={
                "request_id": self.request_id(request),
                "client": request.client.host if request.client else None,
            },
        )
        return {"ok": True}
