"""API documentation package.

This package contains OpenAPI/Swagger documentation for API endpoints.
Documentation is organized by endpoint groups:
- vision.py: Vision analysis endpoints
- responses.py: Common response examples
"""

from .responses import ERROR_RESPONSES
from .vision import (
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

__all__ = [
    "ERROR_RESPONSES",
    "VISION_ANALYZE_DESCRIPTION",
    "VISION_ANALYZE_OPERATION_ID",
    "VISION_ANALYZE_RESPONSES",
    "VISION_ANALYZE_SUMMARY",
    "VISION_REQUEST_BODY",
    "VISION_STREAM_DESCRIPTION",
    "VISION_STREAM_OPERATION_ID",
    "VISION_STREAM_RESPONSES",
    "VISION_STREAM_SUMMARY",
    "VISION_TAGS",
]
