"""Common response examples for API documentation."""
from typing import Dict


def _error_example(code: int, message: str, details: Dict) -> Dict:
    return {
        "application/json": {
            "example": {
                "error": {
                    "code": code,
                    "message": message,
                    "details": details,
                }
            }
        }
    }


# Common error responses
ERROR_RESPONSES: Dict[int, Dict] = {
    400: {
        "description": "Malformed input",
        "content": _error_example(
            400,
            "Invalid 'detail': 'ultra' (expected one of: low, high, auto)",
            {"field": "detail"},
        ),
    },
    403: {
        "description": "Provider disabled",
        "content": _error_example(
            403,
            "Provider openrouter is disabled by feature toggle",
            {"provider_id": "openrouter"},
        ),
    },
    413: {
        "description": "Image too large",
        "content": _error_example(
            413,
            "Image in 'file' is 12582912 bytes, limit is 10485760 bytes",
            {"field": "file", "size": 12582912, "limit": 10485760},
        ),
    },
    415: {
        "description": "Unsupported upload type",
        "content": _error_example(
            415,
            "Unsupported media type: image/bmp",
            {
                "media_type": "image/bmp",
                "allowed": ["image/jpeg", "image/png", "image/webp", "image/gif"],
            },
        ),
    },
    500: {
        "description": "Internal server error",
        "content": _error_example(
            500, "Internal server error", {"error": "Unexpected error occurred"}
        ),
    },
    502: {
        "description": "Upstream unreachable",
        "content": _error_example(
            502,
            "bigmodel API is unreachable",
            {"provider_id": "bigmodel", "error": "All connection attempts failed"},
        ),
    },
    503: {
        "description": "Provider not configured",
        "content": _error_example(
            503,
            "Provider bigmodel is not configured",
            {"provider_id": "bigmodel", "error": "Missing API key"},
        ),
    },
}
