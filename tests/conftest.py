from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from ondevice_openai.core.config import ServerSettings
from ondevice_openai.core.token_estimation import finish_reason_for
from ondevice_openai.core.types import CompletionResult
from ondevice_openai.main import create_app


class FakeEngine:
    def __init__(
        self,
        *,
        available: bool = True,
        reason: Any = None,
        text: str = "stub completion",
        segments: tuple[str, ...] = ("Hel", "lo wo", "rld"),
        snapshots: bool = False,
        fail_with: Exception | None = None,
        fail_after: int | None = None,
    ) -> None:
        self.available = available
        self.reason = reason
        self.text = text
        self.segments = segments
        self.snapshots = snapshots
        self.fail_with = fail_with
        self.fail_after = fail_after

        self.probe_calls = 0
        self.generate_calls = 0
        self.stream_calls = 0
        self.stream_closed = 0
        self.contexts: list[Any] = []
        self.options: list[Any] = []

    async def probe_availability(self):
        self.probe_calls += 1
        return self.available, self.reason

    async def generate(self, context, options):
        self.generate_calls += 1
        self.contexts.append(context)
        self.options.append(options)
        if self.fail_with is not None:
            raise self.fail_with
        return CompletionResult(text=self.text, finish_reason=finish_reason_for(self.text, options))

    async def generate_stream(self, context, options):
        self.stream_calls += 1
        self.contexts.append(context)
        self.options.append(options)
        try:
            for index, segment in enumerate(self.segments):
                if self.fail_with is not None and index == self.fail_after:
                    raise self.fail_with
                yield segment
            if self.fail_with is not None and self.fail_after is None:
                raise self.fail_with
        finally:
            self.stream_closed += 1


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def make_client():
    def _make(engine: FakeEngine, **settings: Any) -> TestClient:
        return TestClient(create_app(ServerSettings(**settings), engine=engine))

    return _make


@pytest.fixture()
def client(make_client, engine: FakeEngine) -> TestClient:
    return make_client(engine)


def parse_sse(body: str) -> tuple[list[dict[str, Any]], list[str]]:
    chunks: list[dict[str, Any]] = []
    raw_events: list[str] = []
    for line in body.splitlines():
        if not line.startswith("data: "):
            continue
        raw_payload = line.removeprefix("data: ")
        raw_events.append(raw_payload)
        if raw_payload == "[DONE]":
            continue
        chunks.append(json.loads(raw_payload))

    return chunks, raw_events
