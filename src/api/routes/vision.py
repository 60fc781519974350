"""Vision analysis router implementation."""
from typing import Callable

from fastapi import Request
from fastapi.responses import Response

from ..docs import (
    VISION_ANALYZE_DESCRIPTION,
    VISION_ANALYZE_OPERATION_ID,
    VISION_ANALYZE_RESPONSES,
    VISION_ANALYZE_SUMMARY,
    VISION_REQUEST_BODY,
    VISION_STREAM_DESCRIPTION,
    VISION_STREAM_OPERATION_ID,
    VISION_STREAM_RESPONSES,
    VISION_STREAM_SUMMARY,
    VISION_TAGS,
)
from .base import BaseRouter
from core.logger import LoggerService
from vision.dispatcher import Dispatcher, PendingUpstreamCall
from vision.normalizer import InputNormalizer
from vision.responder import NonStreamResponder
from vision.stream import EventStreamResponse, StreamSynthesizer


class VisionRouter(BaseRouter):
    """Vision analysis router.

    Both endpoints run the same pipeline; the `/stream` path only forces the
    stream intent, which the normalizer resolves from the URL.
    """

    def __init__(
        self,
        logger: LoggerService,
        normalizer: InputNormalizer,
        dispatcher: Dispatcher,
        responder: NonStreamResponder,
        synthesizer_factory: Callable[..., StreamSynthesizer],
    ) -> None:
        """Initialize router.

        Args:
            logger: Logger service instance
            normalizer: Input normalizer
            dispatcher: Upstream dispatcher
            responder: Non-stream responder
            synthesizer_factory: Builds a stream synthesizer for a pending call

        Raises:
            ValueError: If any required dependency is missing
        """
        if not all([normalizer, dispatcher, responder, synthesizer_factory]):
            raise ValueError("Vision pipeline dependencies are required")

        self.normalizer = normalizer
        self.dispatcher = dispatcher
        self.responder = responder
        self.synthesizer_factory = synthesizer_factory

        super().__init__(logger=logger, prefix="/v1/vision", tags=VISION_TAGS)
        self.logger = logger.get_logger(__name__)

    def _setup_routes(self) -> None:
        self.router.add_api_route(
            "/analyze",
            self.analyze,
            methods=["POST"],
            responses=VISION_ANALYZE_RESPONSES,
            summary=VISION_ANALYZE_SUMMARY,
            description=VISION_ANALYZE_DESCRIPTION,
            operation_id=VISION_ANALYZE_OPERATION_ID,
            openapi_extra=VISION_REQUEST_BODY,
        )
        self.router.add_api_route(
            "/stream",
            self.analyze,
            methods=["POST"],
            responses=VISION_STREAM_RESPONSES,
            summary=VISION_STREAM_SUMMARY,
            description=VISION_STREAM_DESCRIPTION,
            operation_id=VISION_STREAM_OPERATION_ID,
            openapi_extra=VISION_REQUEST_BODY,
        )

    async def analyze(self, request: Request) -> Response:
        """Normalize, dispatch, then stream or respond.

        Normalization and provider selection errors propagate before the
        upstream is contacted and are rendered by ErrorHandlerMiddleware.
        """
        request_id = self.request_id(request)
        canonical = await self.normalizer.normalize(request)
        pending = self.dispatcher.dispatch(canonical, request_id=request_id)

        if canonical.wants_stream:
            return self._stream(pending)

        self.logger.info(
            "Starting regular response",
            extra={"request_id": request_id, "provider_id": pending.provider_id},
        )
        return await self.responder.respond(pending)

    def _stream(self, pending: PendingUpstreamCall) -> EventStreamResponse:
        self.logger.info(
            "Starting streaming response",
            extra={
                "request_id": pending.request_id,
                "provider_id": pending.provider_id,
            },
        )
        synthesizer = self.synthesizer_factory(pending=pending)
        return EventStreamResponse(synthesizer.stream())
