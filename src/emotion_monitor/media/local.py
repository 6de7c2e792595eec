"""Local media devices backed by OpenCV (camera) and sounddevice (microphone)."""

from __future__ import annotations

import asyncio

import cv2
import numpy as np
import sounddevice as sd
import structlog

from emotion_monitor.errors import PermissionDeniedError
from emotion_monitor.media.base import (
    CameraConstraints,
    CameraStream,
    MediaDevices,
    MicrophoneStream,
)

logger = structlog.get_logger(__name__)


class OpenCVCameraStream(CameraStream):
    """Wrap a :class:`cv2.VideoCapture` as a camera stream."""

    def __init__(self, capture: cv2.VideoCapture, *, mirror: bool = True) -> None:
        self._capture = capture
        self._mirror = mirror
        self._playing = False
        self._stopped = False

    @property
    def active(self) -> bool:
        return not self._stopped and self._capture.isOpened()

    async def play(self) -> None:
        # Discard the first frame; many webcams deliver a black one.
        await asyncio.to_thread(self._capture.read)
        self._playing = True
        logger.info("camera.playback_started")

    def read_frame(self) -> np.ndarray | None:
        if not self._playing or not self.active:
            return None
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return None
        # Front-facing cameras are shown mirrored.
        return cv2.flip(frame, 1) if self._mirror else frame

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._playing = False
        self._capture.release()
        logger.info("camera.stopped")


class SoundDeviceMicrophoneStream(MicrophoneStream):
    def __init__(self, stream: sd.InputStream) -> None:
        self._stream = stream
        self._stopped = False

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._stream.stop()
        self._stream.close()
        logger.info("microphone.stopped")


class LocalMediaDevices(MediaDevices):
    """Open devices attached to this machine."""

    async def open_camera(self, constraints: CameraConstraints) -> CameraStream:
        capture = await asyncio.to_thread(self._open_capture, constraints)
        return OpenCVCameraStream(capture, mirror=constraints.facing == "user")

    async def open_microphone(self) -> MicrophoneStream:
        try:
            stream = await asyncio.to_thread(self._open_input)
        except (sd.PortAudioError, ValueError) as exc:
            raise PermissionDeniedError("microphone", str(exc)) from exc
        return SoundDeviceMicrophoneStream(stream)

    @staticmethod
    def _open_capture(constraints: CameraConstraints) -> cv2.VideoCapture:
        capture = cv2.VideoCapture(constraints.index)
        if not capture.isOpened():
            capture.release()
            raise PermissionDeniedError("camera", f"device {constraints.index} unavailable")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        logger.info(
            "camera.opened",
            index=constraints.index,
            width=constraints.width,
            height=constraints.height,
        )
        return capture

    @staticmethod
    def _open_input() -> sd.InputStream:
        stream = sd.InputStream(channels=1)
        stream.start()
        logger.info("microphone.opened", device=stream.device)
        return stream
