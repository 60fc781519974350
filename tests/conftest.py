import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from core.logger import LoggerService
from core.settings import Settings
from di import Container
from main import init_app

TEST_SETTINGS: Dict[str, Any] = {
    "BIGMODEL_API_KEY": "bm-test-key",
    "OPENROUTER_API_KEY": "or-test-key",
    "APP_URL": "https://gateway.example",
    "APP_TITLE": "Vision Gateway Tests",
    "LOG_LEVEL": "WARNING",
}

OK_BODY = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": "A cat."}}],
}


def make_settings(**overrides: Any) -> Settings:
    values = dict(TEST_SETTINGS)
    values.update(overrides)
    return Settings(_env_file=None, **values)


def parse_sse(raw: bytes) -> List[Tuple[Optional[str], str]]:
    """Split an event stream into (event name, data) pairs."""
    events = []
    for block in raw.decode("utf-8").split("\n\n"):
        if not block.strip():
            continue
        name = None
        data = []
        for line in block.split("\n"):
            if line.startswith("event: "):
                name = line[len("event: "):]
            elif line.startswith("data: "):
                data.append(line[len("data: "):])
        events.append((name, "\n".join(data)))
    return events


def named_events(raw: bytes) -> List[Tuple[str, Dict[str, Any]]]:
    """Only the gateway's own frames, with decoded data."""
    return [(name, json.loads(data)) for name, data in parse_sse(raw) if name]


class UpstreamRecorder:
    """Simulated upstream that records every request it receives."""

    def __init__(self, handler: Callable[[httpx.Request], Any]) -> None:
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> Any:
        self.requests.append(request)
        return self.handler(request)

    @property
    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json=OK_BODY)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def logger(settings: Settings) -> LoggerService:
    return LoggerService(settings_instance=settings)


@pytest.fixture
def sse() -> Callable[[bytes], List[Tuple[str, Dict[str, Any]]]]:
    return named_events


@pytest.fixture
def gateway():
    """Build a TestClient around a fresh container and a simulated upstream."""
    clients: List[TestClient] = []

    def build(
        handler: Optional[Callable[[httpx.Request], Any]] = None, **overrides: Any
    ) -> Tuple[TestClient, UpstreamRecorder]:
        recorder = UpstreamRecorder(handler or ok_handler)
        container = Container()
        container.settings.override(providers.Object(make_settings(**overrides)))
        container.upstream_transport.override(providers.Object(recorder.transport()))
        client = TestClient(init_app(container=container))
        clients.append(client)
        return client, recorder

    yield build
    for client in clients:
        client.close()
