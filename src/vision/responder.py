"""Single-document response for non-streaming requests."""
import json

from fastapi.responses import JSONResponse, Response
from httpx import HTTPError

from core.logger import LoggerService
from providers.models import UpstreamUnavailable
from .dispatcher import BODYLESS_STATUSES, PendingUpstreamCall


class NonStreamResponder:
    """Awaits the upstream call and forwards its JSON body and status."""

    def __init__(self, logger: LoggerService) -> None:
        """Initialize responder.

        Args:
            logger: Logger service instance
        """
        self.logger = logger.get_logger(__name__)

    async def respond(self, pending: PendingUpstreamCall) -> Response:
        """Forward the upstream response.

        The upstream status is preserved, including non-2xx statuses. A body
        that is not JSON is replaced with a structured error body, still
        under the upstream status. Statuses that cannot carry a body are
        forwarded with an empty one.

        Raises:
            UpstreamUnavailable: If the upstream cannot be reached
        """
        try:
            try:
                upstream = await pending.open()
            except HTTPError as e:
                self.logger.error(
                    "HTTP error in upstream request",
                    extra={
                        "request_id": pending.request_id,
                        "provider_id": pending.provider_id,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                raise UpstreamUnavailable(pending.provider_id, str(e)) from e

            if upstream.status_code in BODYLESS_STATUSES:
                self.logger.warning(
                    "Upstream returned a bodyless status",
                    extra={
                        "request_id": pending.request_id,
                        "provider_id": pending.provider_id,
                        "status_code": upstream.status_code,
                    },
                )
                return Response(status_code=upstream.status_code)

            content = upstream.content
            try:
                json.loads(content)
            except ValueError:
                self.logger.error(
                    "Upstream returned a non-JSON body",
                    extra={
                        "request_id": pending.request_id,
                        "provider_id": pending.provider_id,
                        "status_code": upstream.status_code,
                        "response_text": upstream.text[:500],
                    },
                )
                return JSONResponse(
                    status_code=upstream.status_code,
                    content={
                        "error": {
                            "code": "upstream_invalid_json",
                            "message": "Upstream response is not valid JSON",
                            "details": {
                                "provider_id": pending.provider_id,
                                "upstream_status": upstream.status_code,
                                "raw": upstream.text[:2000],
                            },
                        }
                    },
                )

            if upstream.is_error:
                self.logger.warning(
                    "Forwarding upstream error status",
                    extra={
                        "request_id": pending.request_id,
                        "provider_id": pending.provider_id,
                        "status_code": upstream.status_code,
                    },
                )
            return Response(
                content=content,
                status_code=upstream.status_code,
                media_type="application/json",
            )
        finally:
            await pending.aclose()
