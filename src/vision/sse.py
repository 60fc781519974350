"""Server-sent event framing for synthetic stream frames."""
import json
import time
from enum import Enum
from typing import Any, Dict, Optional, Tuple

EVENT_SEPARATORS: Tuple[bytes, ...] = (b"\r\n\r\n", b"\n\n", b"\r\r")


class FrameKind(str, Enum):
    """Synthetic frame vocabulary, distinct from the upstream's own events."""

    PROGRESS = "progress"
    HEARTBEAT = "heartbeat"
    ERROR = "error"
    COMPLETE = "complete"


def encode_frame(kind: FrameKind, data: Dict[str, Any]) -> bytes:
    """Encode one named SSE event."""
    payload = json.dumps(data, separators=(",", ":"))
    return f"event: {kind.value}\ndata: {payload}\n\n".encode("utf-8")


def progress_frame(fraction: float, phase: str, **timings: Any) -> bytes:
    """Progress frame with percent in [0, 100] and optional timing fields."""
    percent = round(min(max(fraction, 0.0), 1.0) * 100, 1)
    data: Dict[str, Any] = {"percent": percent, "phase": phase}
    data.update({key: value for key, value in timings.items() if value is not None})
    return encode_frame(FrameKind.PROGRESS, data)


def heartbeat_frame(now: Optional[float] = None) -> bytes:
    return encode_frame(FrameKind.HEARTBEAT, {"ts": now if now is not None else time.time()})


def error_frame(code: str, message: str) -> bytes:
    return encode_frame(FrameKind.ERROR, {"code": code, "message": message})


def complete_frame(elapsed_ms: int, finished_at: Optional[float] = None) -> bytes:
    return encode_frame(
        FrameKind.COMPLETE,
        {
            "finished_at": finished_at if finished_at is not None else time.time(),
            "elapsed_ms": elapsed_ms,
        },
    )
