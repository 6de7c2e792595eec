"""Shared pytest fixtures and in-memory fakes for devices and classifiers."""

from __future__ import annotations

import asyncio
import random
from typing import Any

import numpy as np
import pytest

from emotion_monitor.capture.surface import StillImage
from emotion_monitor.classifier.adapter import InferenceClient
from emotion_monitor.classifier.base import EmotionClassifier, InvalidationToken
from emotion_monitor.errors import PermissionDeniedError
from emotion_monitor.media.base import (
    CameraConstraints,
    CameraStream,
    MediaDevices,
    MicrophoneStream,
)
from emotion_monitor.models import ClassifierResult, Notification
from emotion_monitor.notifications.handlers import NotificationDispatcher, NotificationHandler
from emotion_monitor.session.controller import SessionController


# ── Fakes ─────────────────────────────────────────────────────


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCamera(CameraStream):
    def __init__(self, *, frames: bool = True) -> None:
        self.frames = frames
        self.playing = False
        self.stop_calls = 0

    @property
    def active(self) -> bool:
        return self.stop_calls == 0

    async def play(self) -> None:
        self.playing = True

    def read_frame(self) -> np.ndarray | None:
        if not self.frames or not self.active:
            return None
        return np.full((480, 640, 3), 127, dtype=np.uint8)

    def stop(self) -> None:
        self.stop_calls += 1


class FakeMicrophone(MicrophoneStream):
    def __init__(self) -> None:
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeMediaDevices(MediaDevices):
    def __init__(self, *, camera_ok: bool = True, mic_ok: bool = True) -> None:
        self.camera_ok = camera_ok
        self.mic_ok = mic_ok
        self.cameras: list[FakeCamera] = []
        self.microphones: list[FakeMicrophone] = []
        self.mic_requests = 0

    async def open_camera(self, constraints: CameraConstraints) -> CameraStream:
        if not self.camera_ok:
            raise PermissionDeniedError("camera", "denied by user")
        camera = FakeCamera()
        self.cameras.append(camera)
        return camera

    async def open_microphone(self) -> MicrophoneStream:
        self.mic_requests += 1
        if not self.mic_ok:
            raise PermissionDeniedError("microphone", "denied by user")
        mic = FakeMicrophone()
        self.microphones.append(mic)
        return mic


class ScriptedClassifier(EmotionClassifier):
    """Returns a fixed result, raises a fixed error, or waits on a gate."""

    name = "scripted"

    def __init__(
        self,
        emotion: str = "happy",
        confidence: float = 0.9,
        *,
        error: Exception | None = None,
    ) -> None:
        self.emotion = emotion
        self.confidence = confidence
        self.error = error
        self.gate: asyncio.Event | None = None
        self.calls = 0
        self.closed = False

    async def classify(self, image: StillImage, *, token: InvalidationToken) -> ClassifierResult:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return ClassifierResult(emotion=self.emotion, confidence=self.confidence)

    async def close(self) -> None:
        self.closed = True


class RecordingHandler(NotificationHandler):
    name = "recording"

    def __init__(self) -> None:
        self.received: list[Notification] = []

    async def send(self, notification: Notification) -> bool:
        self.received.append(notification)
        return True

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self.received]


# ── Fixtures ──────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def media() -> FakeMediaDevices:
    return FakeMediaDevices()


@pytest.fixture
def classifier() -> ScriptedClassifier:
    return ScriptedClassifier()


@pytest.fixture
def recorder() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def dispatcher(recorder: RecordingHandler) -> NotificationDispatcher:
    return NotificationDispatcher(handlers=[recorder])


@pytest.fixture
def still_image() -> StillImage:
    return StillImage(data=b"\xff\xd8\xff\xe0fake-jpeg", width=640, height=480)


@pytest.fixture
def make_controller(media, classifier, dispatcher, clock):
    """Build a controller whose timers never fire unless a test asks for it."""

    default_media, default_classifier = media, classifier

    def _make(
        *,
        media: MediaDevices = default_media,
        classifier: EmotionClassifier = default_classifier,
        **overrides: Any,
    ) -> SessionController:
        options: dict[str, Any] = {
            "dispatcher": dispatcher,
            "tick_interval": 3600.0,
            "first_capture_delay": 3600.0,
            "safety_net_seconds": 0.0,
            "rng": random.Random(1234),
            "clock": clock,
        }
        options.update(overrides)
        return SessionController(media, InferenceClient(classifier), **options)

    return _make


@pytest.fixture
async def controller(make_controller):
    ctrl = make_controller()
    yield ctrl
    ctrl.dispose()
    await ctrl.drain()
