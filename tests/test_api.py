"""Tests for the FastAPI session endpoints."""

from __future__ import annotations

import random

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from conftest import FakeMediaDevices, ScriptedClassifier
from emotion_monitor.api.server import create_app
from emotion_monitor.classifier.adapter import InferenceClient
from emotion_monitor.session.controller import SessionController


def _app(media: FakeMediaDevices, classifier: ScriptedClassifier, created: list):
    def factory(settings, dispatcher):
        ctrl = SessionController(
            media,
            InferenceClient(classifier),
            dispatcher=dispatcher,
            tick_interval=3600.0,
            first_capture_delay=3600.0,
            safety_net_seconds=0.0,
            rng=random.Random(3),
        )
        created.append(ctrl)
        return ctrl

    return create_app(factory)


@pytest.fixture
def classifier() -> ScriptedClassifier:
    return ScriptedClassifier("stressed", 0.77)


@pytest.fixture
def controllers() -> list[SessionController]:
    return []


@pytest.fixture
async def client(classifier, controllers):
    """Async test client with lifespan (startup / shutdown) fully executed."""
    app = _app(FakeMediaDevices(), classifier, controllers)
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_session_round_trip(client: AsyncClient, controllers):
    resp = await client.get("/session")
    assert resp.status_code == 200
    assert resp.json()["phase"] == "idle"
    assert resp.json()["camera_permission"] == "unknown"

    resp = await client.post("/session/start")
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_analyzing"] is True
    assert body["current_emotion"] == "neutral"
    assert body["history"][0]["confidence"] == 0.8

    resp = await client.post("/session/capture")
    assert resp.status_code == 200
    assert resp.json()["emotion"] == "stressed"

    resp = await client.get("/session")
    snap = resp.json()
    assert snap["popup"] == {"visible": True, "emotion": "stressed"}
    assert 75 <= snap["metrics"]["stress"] <= 99

    resp = await client.post("/popup/dismiss")
    assert resp.json()["popup"]["visible"] is False

    resp = await client.post("/session/stop")
    assert resp.json()["phase"] == "idle"

    await controllers[0].drain()
    resp = await client.get("/notifications", params={"limit": 10})
    messages = [n["message"] for n in resp.json()]
    assert "Emotion detection started" in messages
    assert "Emotion detected: stressed" in messages
    assert "Emotion detection stopped" in messages


@pytest.mark.asyncio
async def test_capture_requires_running_session(client: AsyncClient):
    resp = await client.post("/session/capture")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_start_denied_returns_403(classifier):
    created: list[SessionController] = []
    app = _app(FakeMediaDevices(camera_ok=False), classifier, created)
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.post("/session/start")
            assert resp.status_code == 403
            resp = await c.get("/session")
            assert resp.json()["camera_permission"] == "denied"
            assert resp.json()["is_analyzing"] is False


@pytest.mark.asyncio
async def test_shutdown_disposes_session(classifier):
    created: list[SessionController] = []
    app = _app(FakeMediaDevices(), classifier, created)
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            await c.post("/session/start")
    ctrl = created[0]
    assert ctrl.is_analyzing is False
    assert ctrl.camera_stream is None
    assert classifier.closed is True
