"""Stream synthesizer.

Wraps a pending upstream streaming call and produces the outbound event
stream: synthetic progress frames while the upstream is slow to start, then
the upstream's own bytes relayed unmodified, interleaved with heartbeats and
soft progress estimates, then a completion frame.

Frames and relayed bytes go through one bounded queue consumed by a single
generator, so the outbound order is exactly the enqueue order. Timers and
the relay are asyncio tasks on the same loop that only ever enqueue. The
relay waits for queue space, so upstream reads follow the client.
"""
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncGenerator, Dict, List, Optional, Union

import anyio
from fastapi.responses import StreamingResponse
from httpx import HTTPError, Response
from starlette.types import Receive, Scope, Send

from core.logger import LoggerService
from core.settings import Settings
from .dispatcher import BODYLESS_STATUSES, PendingUpstreamCall
from .errors import NoUpstreamBody, StreamError, UpstreamReadFault, UpstreamUnreachable
from .sse import (
    EVENT_SEPARATORS,
    complete_frame,
    error_frame,
    heartbeat_frame,
    progress_frame,
)

QUEUED_FRACTION = 0.02
DISPATCHED_FRACTION = 0.05
HEADERS_FLOOR = 1 / 3
FINALIZE_FRACTION = 0.98

# Items buffered between the relay and the client
RELAY_QUEUE_SIZE = 16


class StreamState(str, Enum):
    """Stream synthesizer states."""

    INIT = "init"
    QUEUED = "queued"
    DISPATCHED = "dispatched"
    HEADERS_RECEIVED = "headers_received"
    RELAYING = "relaying"
    FINALIZED = "finalized"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({StreamState.FINALIZED, StreamState.ERRORED})


@dataclass(frozen=True)
class StreamTiming:
    """Timing constants for synthetic frames, read-only for the process."""

    heartbeat_interval: float = 10.0
    soft_progress_interval: float = 0.3
    estimated_total: float = 12.0
    tail_ceiling: float = 0.9
    min_delta: float = 0.02
    min_interval: float = 0.5

    @classmethod
    def from_settings(cls, settings: Settings) -> "StreamTiming":
        return cls(
            heartbeat_interval=settings.STREAM_HEARTBEAT_INTERVAL,
            soft_progress_interval=settings.STREAM_SOFT_PROGRESS_INTERVAL,
            estimated_total=settings.STREAM_ESTIMATED_TOTAL_SECONDS,
            tail_ceiling=settings.STREAM_TAIL_CEILING,
            min_delta=settings.STREAM_PROGRESS_MIN_DELTA,
            min_interval=settings.STREAM_PROGRESS_MIN_INTERVAL,
        )


@dataclass
class StreamSession:
    """Mutable state of one outbound stream. Dies with the response."""

    started_at: float
    emitted_fraction: float = 0.0
    last_emit_at: float = 0.0
    timers: Dict[str, "asyncio.Task[None]"] = field(default_factory=dict)

    @classmethod
    def begin(cls, now: Optional[float] = None) -> "StreamSession":
        now = time.monotonic() if now is None else now
        return cls(started_at=now, last_emit_at=now)

    def elapsed_ms(self, now: Optional[float] = None) -> int:
        now = time.monotonic() if now is None else now
        return int((now - self.started_at) * 1000)

    def record_emit(self, fraction: float, now: float) -> float:
        """Record a fixed-fraction frame; the tracked fraction never drops."""
        self.emitted_fraction = max(self.emitted_fraction, fraction)
        self.last_emit_at = now
        return self.emitted_fraction

    def soft_estimate(self, now: float, timing: StreamTiming) -> Optional[float]:
        """Next soft-progress fraction, or None when nothing should be sent.

        The estimate is capped by the tail ceiling and only emitted when it
        beats the last emitted fraction by more than `min_delta` and at least
        `min_interval` has passed since the last emission.
        """
        if timing.estimated_total <= 0:
            return None
        estimate = min(
            timing.tail_ceiling, (now - self.started_at) / timing.estimated_total
        )
        if estimate - self.emitted_fraction <= timing.min_delta:
            return None
        if now - self.last_emit_at < timing.min_interval:
            return None
        self.emitted_fraction = estimate
        self.last_emit_at = now
        return estimate

    def cancel_timers(self) -> None:
        for task in self.timers.values():
            task.cancel()

    @property
    def timers_running(self) -> bool:
        return any(not task.done() for task in self.timers.values())


class _EndOfStream:
    pass


class _Relayed:
    """Upstream chunk, kept apart from synthetic frames on the queue."""

    __slots__ = ("data",)

    def __init__(self, data: bytes) -> None:
        self.data = data


_END = _EndOfStream()
QueueItem = Union[bytes, _Relayed, StreamError, _EndOfStream]


class StreamSynthesizer:
    """Produces the outbound event stream for one streaming request."""

    def __init__(
        self,
        pending: PendingUpstreamCall,
        timing: StreamTiming,
        logger: LoggerService,
    ) -> None:
        """Initialize synthesizer.

        Args:
            pending: Upstream call that has not been issued yet
            timing: Timer and progress constants
            logger: Logger service instance
        """
        self.pending = pending
        self.timing = timing
        self.logger = logger.get_logger(__name__)
        self.state = StreamState.INIT
        self.history: List[StreamState] = [StreamState.INIT]
        self.session: Optional[StreamSession] = None
        self._relay_task: Optional["asyncio.Task[None]"] = None

    async def stream(self) -> AsyncGenerator[bytes, None]:  # noqa: C901
        """Yield outbound bytes until the stream is finalized or errored."""
        session = self.session = StreamSession.begin()
        try:
            self._transition(StreamState.QUEUED)
            yield self._progress(QUEUED_FRACTION, "queued")

            self._transition(StreamState.DISPATCHED)
            yield self._progress(
                DISPATCHED_FRACTION,
                "selecting_provider",
                provider=self.pending.provider_id,
            )

            try:
                response = await self.pending.open()
            except HTTPError as e:
                yield self._fail(
                    UpstreamUnreachable(
                        f"{self.pending.provider_id} API is unreachable: {e}",
                        details={"error_type": type(e).__name__},
                    )
                )
                return

            self._transition(StreamState.HEADERS_RECEIVED)
            fraction = session.record_emit(HEADERS_FLOOR, time.monotonic())
            yield progress_frame(
                fraction,
                "headers_received",
                ttfb_ms=int((self.pending.headers_elapsed or 0.0) * 1000),
                elapsed_ms=session.elapsed_ms(),
                upstream_status=response.status_code,
            )

            queue: "asyncio.Queue[QueueItem]" = asyncio.Queue(
                maxsize=RELAY_QUEUE_SIZE
            )
            self._start_timers(session, queue)

            if not self._has_body(response):
                yield self._fail(
                    NoUpstreamBody(
                        "Upstream returned no body",
                        details={"upstream_status": response.status_code},
                    )
                )
                return

            self._transition(StreamState.RELAYING)
            self._relay_task = asyncio.create_task(self._relay(response, queue))
            held: List[bytes] = []
            tail = b""
            while True:
                item = await queue.get()
                if isinstance(item, _EndOfStream):
                    break
                if isinstance(item, StreamError):
                    yield self._fail(item)
                    return
                if isinstance(item, _Relayed):
                    yield item.data
                    tail = (tail + item.data)[-4:]
                    if held and tail.endswith(EVENT_SEPARATORS):
                        for frame in held:
                            yield frame
                        held.clear()
                elif tail and not tail.endswith(EVENT_SEPARATORS):
                    # An upstream event is still open
                    if len(held) < RELAY_QUEUE_SIZE:
                        held.append(item)
                else:
                    yield item

            session.cancel_timers()
            self._transition(StreamState.FINALIZED)
            yield self._progress(FINALIZE_FRACTION, "finalize")
            elapsed_ms = session.elapsed_ms()
            self.logger.info(
                "Stream completed",
                extra={
                    "request_id": self.pending.request_id,
                    "provider_id": self.pending.provider_id,
                    "elapsed_ms": elapsed_ms,
                },
            )
            yield complete_frame(elapsed_ms)
        finally:
            await self._shutdown()

    def _transition(self, state: StreamState) -> None:
        self.logger.debug(
            "Stream state transition",
            extra={
                "request_id": self.pending.request_id,
                "from_state": self.state.value,
                "to_state": state.value,
            },
        )
        self.state = state
        self.history.append(state)

    def _progress(self, fraction: float, phase: str, **fields: object) -> bytes:
        if self.session is None:
            raise RuntimeError("Stream session has not been started")
        fraction = self.session.record_emit(fraction, time.monotonic())
        return progress_frame(
            fraction, phase, elapsed_ms=self.session.elapsed_ms(), **fields
        )

    def _fail(self, error: StreamError) -> bytes:
        if self.session is not None:
            self.session.cancel_timers()
        self._transition(StreamState.ERRORED)
        self.logger.error(
            "Stream failed",
            extra={
                "request_id": self.pending.request_id,
                "provider_id": self.pending.provider_id,
                "error_code": error.frame_code,
                "error_message": error.message,
                "error_details": error.details,
            },
        )
        return error_frame(error.frame_code, error.message)

    @staticmethod
    def _has_body(response: Response) -> bool:
        if response.status_code in BODYLESS_STATUSES:
            return False
        return response.headers.get("content-length") != "0"

    def _start_timers(
        self, session: StreamSession, queue: "asyncio.Queue[QueueItem]"
    ) -> None:
        session.timers["heartbeat"] = asyncio.create_task(self._heartbeat(queue))
        session.timers["soft_progress"] = asyncio.create_task(
            self._soft_progress(session, queue)
        )

    async def _heartbeat(self, queue: "asyncio.Queue[QueueItem]") -> None:
        while True:
            await asyncio.sleep(self.timing.heartbeat_interval)
            # A full queue already means the client is behind
            if not queue.full():
                queue.put_nowait(heartbeat_frame())

    async def _soft_progress(
        self, session: StreamSession, queue: "asyncio.Queue[QueueItem]"
    ) -> None:
        while True:
            await asyncio.sleep(self.timing.soft_progress_interval)
            if queue.full():
                continue
            now = time.monotonic()
            fraction = session.soft_estimate(now, self.timing)
            if fraction is not None:
                queue.put_nowait(
                    progress_frame(
                        fraction, "generating", elapsed_ms=session.elapsed_ms(now)
                    )
                )

    async def _relay(self, response: Response, queue: "asyncio.Queue[QueueItem]") -> None:
        """Forward each upstream chunk to the queue as it is read."""
        relayed = 0
        try:
            async for chunk in response.aiter_bytes():
                relayed += len(chunk)
                await queue.put(_Relayed(chunk))
        except Exception as e:
            self.logger.error(
                "Error reading upstream stream",
                extra={
                    "request_id": self.pending.request_id,
                    "provider_id": self.pending.provider_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "relayed_bytes": relayed,
                },
                exc_info=not isinstance(e, HTTPError),
            )
            await queue.put(
                UpstreamReadFault(
                    f"Upstream stream read failed: {e}",
                    details={"relayed_bytes": relayed},
                )
            )
            return

        await queue.put(_END)

    async def _shutdown(self) -> None:
        """Cancel timers and relay, close the upstream. Runs on every exit."""
        tasks: List["asyncio.Task[None]"] = []
        if self.session is not None:
            self.session.cancel_timers()
            tasks.extend(self.session.timers.values())
        if self._relay_task is not None:
            self._relay_task.cancel()
            tasks.append(self._relay_task)

        if self.state not in TERMINAL_STATES:
            self.logger.info(
                "Stream closed by client before completion",
                extra={
                    "request_id": self.pending.request_id,
                    "provider_id": self.pending.provider_id,
                    "state": self.state.value,
                },
            )
            self._transition(StreamState.ERRORED)

        with anyio.CancelScope(shield=True):
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            await self.pending.aclose()


EVENT_STREAM_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}


class EventStreamResponse(StreamingResponse):
    """Event stream response that always closes its generator.

    Starlette stops iterating on disconnect without closing the body
    iterator; closing it here runs the synthesizer's cleanup immediately
    instead of at garbage collection.
    """

    media_type = "text/event-stream"

    def __init__(
        self,
        content: AsyncGenerator[bytes, None],
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(
            content,
            status_code=200,
            headers={**EVENT_STREAM_HEADERS, **(headers or {})},
            media_type=self.media_type,
        )
        self._generator = content

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            with anyio.CancelScope(shield=True):
                await self._generator.aclose()
