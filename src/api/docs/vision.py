"""Vision analysis API documentation."""
from typing import Any, Dict

from .responses import ERROR_RESPONSES

VISION_ANALYZE_DESCRIPTION = """
Analyzes one or more images with a vision model.

The body is either `application/json` or `multipart/form-data` with the same
field names. Images may be given as a list of URLs or data URIs (`images`),
a single `image_url`, a single `image_base64`, or an uploaded `file`
(multipart only; JPEG, PNG, WEBP or GIF).

Provider selection:
- `provider` in the body (`bigmodel` or `openrouter`)
- otherwise the `provider` query parameter
- otherwise the configured default provider

The response is the provider's JSON document with the provider's own HTTP
status. Set `stream: true` in the body, pass `?stream=1`, or call
`/v1/vision/stream` to receive an event stream instead.
"""

VISION_STREAM_DESCRIPTION = """
Same inputs as `/v1/vision/analyze`, always answered with an event stream.

The stream interleaves the provider's own event stream, relayed byte for
byte, with named gateway events:
- `progress`: `{"percent", "phase", ...timings}`, never decreasing
- `heartbeat`: `{"ts"}` while the provider is generating
- `error`: `{"code", "message"}`, the last event of a failed stream
- `complete`: `{"finished_at", "elapsed_ms"}`, the last event of a good stream

Consumers that only understand the provider's format can ignore every named
event.
"""

VISION_STREAM_EXAMPLE = (
    'event: progress\ndata: {"percent":2.0,"phase":"queued","elapsed_ms":0}\n\n'
    'event: progress\ndata: {"percent":5.0,"phase":"selecting_provider",'
    '"elapsed_ms":0,"provider":"bigmodel"}\n\n'
    'event: progress\ndata: {"percent":33.3,"phase":"headers_received",'
    '"ttfb_ms":840,"elapsed_ms":841,"upstream_status":200}\n\n'
    'data: {"choices":[{"delta":{"content":"A cat"}}]}\n\n'
    "data: [DONE]\n\n"
    'event: progress\ndata: {"percent":98.0,"phase":"finalize","elapsed_ms":2310}\n\n'
    'event: complete\ndata: {"finished_at":1718000000.5,"elapsed_ms":2310}\n\n'
)

VISION_SUCCESS_EXAMPLE = {
    "id": "chatcmpl-123",
    "object": "chat.completion",
    "created": 1718000000,
    "model": "glm-4.5v",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "A cat sitting on a sofa."},
            "finish_reason": "stop",
        }
    ],
    "usage": {"prompt_tokens": 812, "completion_tokens": 9, "total_tokens": 821},
}

_VISION_FIELDS: Dict[str, Any] = {
    "provider": {"type": "string", "enum": ["bigmodel", "openrouter"]},
    "model": {"type": "string"},
    "prompt": {"type": "string"},
    "images": {"type": "array", "items": {"type": "string"}},
    "image_url": {"type": "string"},
    "image_base64": {"type": "string"},
    "detail": {"type": "string", "enum": ["low", "high", "auto"]},
    "thinking": {"type": "string", "enum": ["enabled", "disabled"]},
    "stream": {"type": "boolean"},
}

VISION_REQUEST_BODY: Dict[str, Any] = {
    "requestBody": {
        "required": True,
        "content": {
            "application/json": {
                "schema": {"type": "object", "properties": _VISION_FIELDS},
                "example": {
                    "provider": "bigmodel",
                    "prompt": "What is in this picture?",
                    "images": ["https://example.com/cat.jpg"],
                    "thinking": "disabled",
                },
            },
            "multipart/form-data": {
                "schema": {
                    "type": "object",
                    "properties": {
                        **_VISION_FIELDS,
                        "file": {"type": "string", "format": "binary"},
                    },
                }
            },
        },
    }
}

VISION_ANALYZE_RESPONSES: Dict[int, Dict] = {
    200: {
        "description": "Provider response, or an event stream when requested",
        "content": {
            "application/json": {"example": VISION_SUCCESS_EXAMPLE},
            "text/event-stream": {"example": VISION_STREAM_EXAMPLE},
        },
    },
    **ERROR_RESPONSES,
}

VISION_STREAM_RESPONSES: Dict[int, Dict] = {
    200: {
        "description": "Event stream",
        "content": {"text/event-stream": {"example": VISION_STREAM_EXAMPLE}},
    },
    **ERROR_RESPONSES,
}

VISION_TAGS = ["vision"]

VISION_ANALYZE_OPERATION_ID = "create_vision_analysis"
VISION_STREAM_OPERATION_ID = "create_vision_analysis_stream"

VISION_ANALYZE_SUMMARY = "Analyze images with a vision model"
VISION_STREAM_SUMMARY = "Analyze images with a vision model as an event stream"
