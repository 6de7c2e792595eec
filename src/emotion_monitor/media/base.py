"""Abstract media boundary — camera and microphone access."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, slots=True)
class CameraConstraints:
    """Requested capture properties.  Devices treat them as hints."""

    width: int = 640
    height: int = 480
    facing: str = "user"
    index: int = 0


class CameraStream(ABC):
    """A revocable live video stream."""

    @property
    @abstractmethod
    def active(self) -> bool:
        """``True`` until :meth:`stop` has been called."""

    @abstractmethod
    async def play(self) -> None:
        """Begin delivering frames."""

    @abstractmethod
    def read_frame(self) -> np.ndarray | None:
        """Return the current BGR frame, or ``None`` if none is available."""

    @abstractmethod
    def stop(self) -> None:
        """Release the device.  Must be safe to call more than once."""


class MicrophoneStream(ABC):
    """A revocable audio stream.  Only used as a permission gate."""

    @abstractmethod
    def stop(self) -> None:
        """Release the device.  Must be safe to call more than once."""


class MediaDevices(ABC):
    """Contract for opening camera and microphone streams.

    Implementations raise :class:`~emotion_monitor.errors.PermissionDeniedError`
    when a device is absent, denied, or fails to open.
    """

    @abstractmethod
    async def open_camera(self, constraints: CameraConstraints) -> CameraStream:
        """Open the camera described by *constraints*."""

    @abstractmethod
    async def open_microphone(self) -> MicrophoneStream:
        """Open the default microphone."""
