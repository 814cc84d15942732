from __future__ import annotations

import logging

import pytest

import ondevice_openai.server as server
from conftest import FakeEngine
from ondevice_openai.core.config import ServerSettings


@pytest.fixture()
def captured_run(monkeypatch):
    captured = {}

    def fake_run(app, **kwargs):
        captured["app"] = app
        captured.update(kwargs)

    monkeypatch.setattr(server.uvicorn, "run", fake_run)
    monkeypatch.setattr(server, "load_settings", lambda: ServerSettings(host="127.0.0.1", port=11535))
    return captured


def test_startup_logs_unavailable_reason(captured_run, caplog):
    engine = FakeEngine(available=False, reason="MODEL_NOT_READY")

    with caplog.at_level(logging.INFO, logger="ondevice_openai.server"):
        server.main(engine=engine)

    assert "reason=modelNotReady" in caplog.text
    assert engine.probe_calls == 1
    assert captured_run["port"] == 11535
    assert captured_run["app"].state.engine is engine


def test_startup_logs_available_model_and_urls(captured_run, caplog):
    engine = FakeEngine()

    with caplog.at_level(logging.INFO, logger="ondevice_openai.server"):
        server.main(engine=engine)

    assert "Foundation model is available" in caplog.text
    assert "http://127.0.0.1:11535/v1" in caplog.text
    assert captured_run["host"] == "127.0.0.1"
