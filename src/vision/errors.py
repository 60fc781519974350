"""Vision pipeline errors.

Input errors are raised before any upstream call and surface as HTTP client
errors. Stream errors are only ever reported in-band as `error` frames.
"""
from typing import Any, Dict, Optional

from providers.models import ProviderError


class MalformedInput(ProviderError):
    """Inbound body could not be normalized."""

    def __init__(
        self, message: str, field: Optional[str] = None, code: int = 400
    ) -> None:
        details: Dict[str, Any] = {"field": field} if field else {}
        super().__init__(code=code, message=message, details=details)
        self.field = field


class ImageTooLarge(MalformedInput):
    """Inline or uploaded image exceeds the configured size limit."""

    def __init__(self, field: str, size: int, limit: int) -> None:
        super().__init__(
            f"Image in '{field}' is {size} bytes, limit is {limit} bytes",
            field=field,
            code=413,
        )
        self.details.update({"size": size, "limit": limit})


class UnsupportedMediaType(ProviderError):
    """Uploaded file is not a whitelisted raster image type."""

    def __init__(self, media_type: str, allowed: tuple) -> None:
        super().__init__(
            code=415,
            message=f"Unsupported media type: {media_type or 'unknown'}",
            details={"media_type": media_type, "allowed": list(allowed)},
        )


class StreamError(ProviderError):
    """Failure discovered after the outbound stream started."""

    frame_code = "stream_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(code=502, message=message, details=details)


class UpstreamUnreachable(StreamError):
    """Upstream never returned response headers."""

    frame_code = "upstream_unreachable"


class NoUpstreamBody(StreamError):
    """Stream requested but the upstream response has no body."""

    frame_code = "no_upstream_body"


class UpstreamReadFault(StreamError):
    """Reading the upstream body failed mid-relay."""

    frame_code = "upstream_read_fault"
