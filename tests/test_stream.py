import asyncio
import time
from typing import AsyncIterator, List, Tuple

import httpx
import pytest

from providers.factory import ProviderFactory
from providers.manager import ProviderManager
from vision.dispatcher import Dispatcher
from vision.models import CanonicalRequest
from vision.sse import progress_frame
from vision.stream import (
    QUEUED_FRACTION,
    RELAY_QUEUE_SIZE,
    StreamSession,
    StreamState,
    StreamSynthesizer,
    StreamTiming,
)

from conftest import UpstreamRecorder, make_settings, named_events

SSE_HEADERS = {"content-type": "text/event-stream"}

QUICK = StreamTiming(
    heartbeat_interval=10.0,
    soft_progress_interval=0.05,
    estimated_total=0.5,
    tail_ceiling=0.9,
    min_delta=0.02,
    min_interval=0.05,
)


def upstream_chunks(chunks: List[bytes], delay: float = 0.0) -> AsyncIterator[bytes]:
    async def body():
        for chunk in chunks:
            if delay:
                await asyncio.sleep(delay)
            yield chunk

    return body()


def synthesizer_for(logger, handler, timing: StreamTiming = QUICK) -> StreamSynthesizer:
    settings = make_settings()
    dispatcher = Dispatcher(
        logger=logger,
        settings=settings,
        provider_manager=ProviderManager(
            logger=logger,
            settings=settings,
            provider_factory=ProviderFactory(logger=logger),
        ),
        transport=UpstreamRecorder(handler).transport(),
    )
    pending = dispatcher.dispatch(
        CanonicalRequest(images=("https://example.com/a.jpg",), wants_stream=True),
        request_id="req-stream",
    )
    return StreamSynthesizer(pending=pending, timing=timing, logger=logger)


async def collect(synthesizer: StreamSynthesizer) -> bytes:
    return b"".join([chunk async for chunk in synthesizer.stream()])


def run_stream(synthesizer: StreamSynthesizer) -> bytes:
    return asyncio.run(collect(synthesizer))


def phases(raw: bytes) -> List[str]:
    return [data.get("phase", name) for name, data in named_events(raw)]


def percents(raw: bytes) -> List[float]:
    return [data["percent"] for name, data in named_events(raw) if name == "progress"]


def test_prefix_is_identical_for_fast_and_slow_upstreams(logger):
    async def fast(request):
        return httpx.Response(200, headers=SSE_HEADERS, content=upstream_chunks([b"data: [DONE]\n\n"]))

    async def slow(request):
        await asyncio.sleep(0.2)
        return httpx.Response(200, headers=SSE_HEADERS, content=upstream_chunks([b"data: [DONE]\n\n"]))

    fast_raw = run_stream(synthesizer_for(logger, fast))
    slow_raw = run_stream(synthesizer_for(logger, slow))

    for raw in (fast_raw, slow_raw):
        events = named_events(raw)
        assert [data["phase"] for _, data in events[:3]] == [
            "queued",
            "selecting_provider",
            "headers_received",
        ]
        assert [data["percent"] for _, data in events[:3]] == [2.0, 5.0, 33.3]


def test_slow_body_gets_soft_progress_then_completes(logger):
    async def handler(request):
        await asyncio.sleep(0.05)

        async def body():
            await asyncio.sleep(0.3)
            return
            yield b""

        return httpx.Response(200, headers=SSE_HEADERS, content=body())

    synthesizer = synthesizer_for(logger, handler)
    raw = run_stream(synthesizer)
    seen = phases(raw)

    assert seen[:3] == ["queued", "selecting_provider", "headers_received"]
    assert seen[-2:] == ["finalize", "complete"]
    assert "generating" in seen
    assert "heartbeat" not in seen
    values = percents(raw)
    assert values == sorted(values)
    assert max(values[:-1]) <= 90.0
    assert values[-1] == 98.0
    assert synthesizer.state is StreamState.FINALIZED
    assert synthesizer.history == [
        StreamState.INIT,
        StreamState.QUEUED,
        StreamState.DISPATCHED,
        StreamState.HEADERS_RECEIVED,
        StreamState.RELAYING,
        StreamState.FINALIZED,
    ]


def test_upstream_bytes_are_relayed_unmodified(logger):
    upstream_events = [
        b'data: {"choices":[{"delta":{"content":"A "}}]}\n\n',
        b'data: {"choices":[{"delta":{"content":"cat"}}]}\n\n',
        b"data: [DONE]\n\n",
    ]

    async def handler(request):
        return httpx.Response(200, headers=SSE_HEADERS, content=upstream_chunks(upstream_events))

    raw = run_stream(synthesizer_for(logger, handler))

    assert b"".join(upstream_events) in raw


def test_frames_never_split_an_upstream_event(logger):
    chunks = [b'data: {"x"', b":1}\n", b"\ndata: [DO", b"NE]\n\n"]

    async def handler(request):
        return httpx.Response(
            200, headers=SSE_HEADERS, content=upstream_chunks(chunks, delay=0.08)
        )

    timing = StreamTiming(
        heartbeat_interval=0.01,
        soft_progress_interval=0.01,
        estimated_total=0.2,
        min_delta=0.01,
        min_interval=0.01,
    )
    raw = run_stream(synthesizer_for(logger, handler, timing))

    assert b"".join(chunks) in raw
    assert "heartbeat" in phases(raw)


async def timed_items(synthesizer: StreamSynthesizer) -> List[Tuple[float, bytes]]:
    started = time.monotonic()
    return [(time.monotonic() - started, item) async for item in synthesizer.stream()]


def test_chunks_are_relayed_as_they_arrive(logger):
    async def body():
        yield b"data: partial-token"
        await asyncio.sleep(0.5)
        yield b"\n\n"

    async def handler(request):
        return httpx.Response(200, headers=SSE_HEADERS, content=body())

    timing = StreamTiming(heartbeat_interval=0.05, soft_progress_interval=10.0)
    items = asyncio.run(timed_items(synthesizer_for(logger, handler, timing)))
    chunks = [item for _, item in items]

    first = chunks.index(b"data: partial-token")
    assert items[first][0] < 0.25
    # Heartbeats due while the event was open follow the closing chunk
    assert chunks[first + 1] == b"\n\n"
    assert chunks[first + 2].startswith(b"event: heartbeat")


def test_unterminated_body_is_not_padded(logger):
    async def handler(request):
        return httpx.Response(200, content=upstream_chunks([b'{"a":1}']))

    raw = run_stream(synthesizer_for(logger, handler))

    assert b'{"a":1}event: progress' in raw
    assert b'{"a":1}\n' not in raw


def test_relay_reads_follow_the_client(logger):
    pulled = 0

    async def body():
        nonlocal pulled
        for index in range(5000):
            pulled += 1
            yield f"data: {index}\n\n".encode()

    async def handler(request):
        return httpx.Response(200, headers=SSE_HEADERS, content=body())

    synthesizer = synthesizer_for(logger, handler)

    async def run():
        stream = synthesizer.stream()
        for _ in range(4):
            await stream.__anext__()
        await asyncio.sleep(0.3)
        seen = pulled
        await stream.aclose()
        return seen

    seen = asyncio.run(run())

    assert seen < 2 * RELAY_QUEUE_SIZE
    assert synthesizer.pending.is_closed


def heartbeat_times(items: List[Tuple[float, bytes]]) -> List[float]:
    return [at for at, item in items if item.startswith(b"event: heartbeat")]


def test_heartbeats_keep_their_period_while_relaying(logger):
    async def handler(request):
        return httpx.Response(
            200,
            headers=SSE_HEADERS,
            content=upstream_chunks([b"data: tick\n\n"] * 8, delay=0.05),
        )

    timing = StreamTiming(heartbeat_interval=0.05, soft_progress_interval=10.0)
    synthesizer = synthesizer_for(logger, handler, timing)
    items = asyncio.run(timed_items(synthesizer))
    beats = heartbeat_times(items)
    gaps = [later - earlier for earlier, later in zip(beats, beats[1:])]

    assert len(beats) >= 4
    assert all(0.025 <= gap <= 0.15 for gap in gaps)
    assert sum(gaps) / len(gaps) == pytest.approx(0.05, abs=0.025)
    assert items[-1][1].startswith(b"event: complete")
    assert not any(item.startswith(b"event: heartbeat") for _, item in items[-2:])
    assert not synthesizer.session.timers_running


def test_heartbeats_stop_at_error_frame(logger):
    async def body():
        for _ in range(4):
            await asyncio.sleep(0.05)
            yield b"data: tick\n\n"
        raise httpx.ReadError("connection reset")

    async def handler(request):
        return httpx.Response(200, headers=SSE_HEADERS, content=body())

    timing = StreamTiming(heartbeat_interval=0.05, soft_progress_interval=10.0)
    synthesizer = synthesizer_for(logger, handler, timing)

    async def run():
        items = await timed_items(synthesizer)
        await asyncio.sleep(0.15)
        return items

    items = asyncio.run(run())

    assert heartbeat_times(items)
    assert items[-1][1].startswith(b"event: error")
    assert synthesizer.state is StreamState.ERRORED
    assert not synthesizer.session.timers_running


def test_no_frames_after_complete_and_timers_stopped(logger):
    async def handler(request):
        return httpx.Response(
            200,
            headers=SSE_HEADERS,
            content=upstream_chunks([b"data: 1\n\n", b"data: 2\n\n", b"data: 3\n\n"], delay=0.05),
        )

    timing = StreamTiming(heartbeat_interval=0.02, soft_progress_interval=0.02)
    synthesizer = synthesizer_for(logger, handler, timing)

    async def run():
        raw = await collect(synthesizer)
        await asyncio.sleep(0.1)
        return raw

    raw = asyncio.run(run())
    events = named_events(raw)

    assert events[-1][0] == "complete"
    assert "heartbeat" in [name for name, _ in events]
    assert raw.endswith(b"\n\n")
    assert raw.rfind(b"event: heartbeat") < raw.rfind(b"event: complete")
    assert not synthesizer.session.timers_running
    assert synthesizer.pending.is_closed


def test_upstream_error_status_is_relayed(logger):
    async def handler(request):
        return httpx.Response(429, json={"error": {"message": "rate limited"}})

    synthesizer = synthesizer_for(logger, handler)
    raw = run_stream(synthesizer)
    events = named_events(raw)

    assert events[2][1]["upstream_status"] == 429
    assert b'{"error":{"message":"rate limited"}}' in raw.replace(b" ", b"")
    assert events[-1][0] == "complete"
    assert synthesizer.state is StreamState.FINALIZED


def test_unreachable_upstream_emits_error_frame(logger):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    synthesizer = synthesizer_for(logger, handler)
    events = named_events(run_stream(synthesizer))

    assert [name for name, _ in events] == ["progress", "progress", "error"]
    assert events[-1][1]["code"] == "upstream_unreachable"
    assert synthesizer.state is StreamState.ERRORED
    assert synthesizer.pending.is_closed


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(204),
        httpx.Response(200, headers={"content-length": "0"}),
    ],
)
def test_missing_body_emits_error_frame(logger, response):
    async def handler(request):
        return response

    synthesizer = synthesizer_for(logger, handler)
    events = named_events(run_stream(synthesizer))

    assert [data.get("phase") for _, data in events[:3]] == [
        "queued",
        "selecting_provider",
        "headers_received",
    ]
    assert events[-1][0] == "error"
    assert events[-1][1]["code"] == "no_upstream_body"
    assert "complete" not in [name for name, _ in events]
    assert synthesizer.state is StreamState.ERRORED
    assert not synthesizer.session.timers_running


def test_read_fault_keeps_relayed_bytes(logger):
    async def body():
        yield b'data: {"partial":true}\n\n'
        yield b"data: trunc"
        raise httpx.ReadError("connection reset")

    async def handler(request):
        return httpx.Response(200, headers=SSE_HEADERS, content=body())

    synthesizer = synthesizer_for(logger, handler)
    raw = run_stream(synthesizer)

    assert b'data: {"partial":true}\n\ndata: truncevent: error\n' in raw
    assert b'"code":"upstream_read_fault"' in raw
    assert b"event: complete" not in raw
    assert synthesizer.state is StreamState.ERRORED
    assert synthesizer.pending.is_closed


def test_client_disconnect_releases_everything(logger):
    async def handler(request):
        return httpx.Response(
            200,
            headers=SSE_HEADERS,
            content=upstream_chunks([b"data: tick\n\n"] * 100, delay=0.05),
        )

    synthesizer = synthesizer_for(logger, handler)

    async def run():
        stream = synthesizer.stream()
        received = [await stream.__anext__() for _ in range(4)]
        await stream.aclose()
        return received

    received = asyncio.run(run())

    assert len(received) == 4
    assert synthesizer.state is StreamState.ERRORED
    assert synthesizer.pending.is_closed
    assert not synthesizer.session.timers_running
    assert synthesizer._relay_task.done()


def test_soft_estimate_is_monotonic_and_capped():
    timing = StreamTiming(estimated_total=10.0, tail_ceiling=0.9, min_delta=0.02, min_interval=0.5)
    session = StreamSession.begin(now=0.0)
    session.record_emit(1 / 3, now=0.0)

    emitted = []
    for tick in range(1, 200):
        value = session.soft_estimate(now=tick * 0.3, timing=timing)
        if value is not None:
            emitted.append(value)

    assert emitted == sorted(emitted)
    assert len(set(emitted)) == len(emitted)
    assert emitted[0] > 1 / 3 + 0.02
    assert 0.88 <= emitted[-1] <= 0.9
    assert all(value <= 0.9 for value in emitted)


def test_soft_estimate_respects_min_interval_and_delta():
    timing = StreamTiming(estimated_total=1.0, tail_ceiling=0.9, min_delta=0.02, min_interval=0.5)
    session = StreamSession.begin(now=0.0)

    assert session.soft_estimate(now=0.01, timing=timing) is None
    assert session.soft_estimate(now=0.4, timing=timing) is None
    assert session.soft_estimate(now=0.6, timing=timing) == pytest.approx(0.6)
    assert session.soft_estimate(now=0.8, timing=timing) is None
    assert session.soft_estimate(now=1.2, timing=timing) == 0.9


def test_fixed_fraction_never_lowers_progress():
    session = StreamSession.begin(now=0.0)
    session.record_emit(0.5, now=1.0)

    assert session.record_emit(1 / 3, now=2.0) == 0.5


def test_progress_frame_format():
    assert progress_frame(1 / 3, "headers_received", ttfb_ms=12, skipped=None) == (
        b'event: progress\ndata: {"percent":33.3,"phase":"headers_received","ttfb_ms":12}\n\n'
    )


def test_progress_before_session_start_is_an_error(logger):
    synthesizer = synthesizer_for(logger, lambda request: httpx.Response(200))

    with pytest.raises(RuntimeError):
        synthesizer._progress(QUEUED_FRACTION, "queued")
