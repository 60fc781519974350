"""Provider selection and upstream call dispatch."""
import time
from typing import Optional

from httpx import AsyncBaseTransport, AsyncClient, Request, Response, Timeout

from core.logger import LoggerService
from core.settings import Settings
from providers.base import VisionProvider
from providers.manager import ProviderManager
from providers.models import UpstreamPayload
from .models import CanonicalRequest

# Statuses that never carry a response body
BODYLESS_STATUSES = frozenset({204, 205, 304})


class PendingUpstreamCall:
    """A built but not yet issued upstream request.

    Owns its own HTTP client, so nothing is shared between inbound requests.
    The caller decides whether to await the full response or hand the call to
    the stream synthesizer; either way `aclose` releases the client.
    """

    def __init__(
        self,
        provider_id: str,
        payload: UpstreamPayload,
        request: Request,
        client: AsyncClient,
        logger: LoggerService,
        request_id: Optional[str] = None,
    ) -> None:
        self.provider_id = provider_id
        self.payload = payload
        self.request = request
        self.request_id = request_id
        self.response: Optional[Response] = None
        self.headers_elapsed: Optional[float] = None
        self._client = client
        self._closed = False
        self.logger = logger.get_logger(__name__)

    @property
    def stream(self) -> bool:
        return self.payload.stream

    @property
    def is_closed(self) -> bool:
        return self._closed

    async def open(self) -> Response:
        """Issue the upstream POST.

        Returns as soon as the response headers arrive when streaming,
        otherwise once the whole body has been read.

        Raises:
            httpx.HTTPError: On transport failures
        """
        if self.response is not None:
            raise RuntimeError("Upstream call was already issued")

        self.logger.info(
            "Issuing upstream request",
            extra={
                "request_id": self.request_id,
                "provider_id": self.provider_id,
                "url": str(self.request.url),
                "model": self.payload.model,
                "stream": self.stream,
            },
        )
        started = time.monotonic()
        self.response = await self._client.send(self.request, stream=self.stream)
        self.headers_elapsed = time.monotonic() - started
        self.logger.info(
            "Upstream responded",
            extra={
                "request_id": self.request_id,
                "provider_id": self.provider_id,
                "status_code": self.response.status_code,
                "elapsed_seconds": round(self.headers_elapsed, 3),
            },
        )
        return self.response

    async def aclose(self) -> None:
        """Close the upstream response and the client. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            if self.response is not None:
                await self.response.aclose()
        finally:
            await self._client.aclose()
            self.logger.debug(
                "Upstream call closed",
                extra={"request_id": self.request_id, "provider_id": self.provider_id},
            )


class Dispatcher:
    """Selects a provider and prepares exactly one upstream call per request."""

    def __init__(
        self,
        logger: LoggerService,
        settings: Settings,
        provider_manager: ProviderManager,
        transport: Optional[AsyncBaseTransport] = None,
    ) -> None:
        """Initialize dispatcher.

        Args:
            logger: Logger service instance
            settings: Application settings
            provider_manager: Provider manager instance
            transport: Optional httpx transport for upstream calls
        """
        self.logger_service = logger
        self.logger = logger.get_logger(__name__)
        self.settings = settings
        self.provider_manager = provider_manager
        self.transport = transport

    def select_provider(self, request: CanonicalRequest) -> VisionProvider:
        """Explicit request provider, otherwise the configured default."""
        alias = (
            request.provider.value
            if request.provider is not None
            else self.provider_manager.default_provider
        )
        return self.provider_manager.get_provider(alias)

    def dispatch(
        self, request: CanonicalRequest, request_id: Optional[str] = None
    ) -> PendingUpstreamCall:
        """Build the upstream call without issuing it.

        Provider selection failures raise here, before any network I/O.

        Args:
            request: Canonical request
            request_id: Request ID for tracing

        Returns:
            Pending upstream call
        """
        provider = self.select_provider(request)
        payload = provider.build_payload(request, self.settings.DEFAULT_MODEL)

        client = AsyncClient(
            timeout=Timeout(float(provider.config.parameters.get("timeout", 300))),
            verify=provider.config.parameters.get("verify_ssl", True),
            transport=self.transport,
        )
        http_request = client.build_request(
            "POST",
            provider.endpoint(),
            headers=provider.request_headers(stream=payload.stream),
            json=payload.to_body(),
        )

        self.logger.info(
            "Dispatching vision request",
            extra={
                "request_id": request_id,
                "provider_id": provider.provider_id,
                "model": payload.model,
                "stream": payload.stream,
            },
        )
        return PendingUpstreamCall(
            provider_id=provider.provider_id,
            payload=payload,
            request=http_request,
            client=client,
            logger=self.logger_service,
            request_id=request_id,
        )
