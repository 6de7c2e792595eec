"""Drawable capture surface — holds the last frame and encodes it as JPEG."""

from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass(frozen=True, slots=True)
class StillImage:
    """A single encoded frame ready for the classifier."""

    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"


class FrameSurface:
    """Fixed-size surface that frames are drawn into before encoding.

    Frames of any size are scaled to the surface dimensions, mirroring a
    canvas ``drawImage(video, 0, 0, w, h)`` call.
    """

    def __init__(self, width: int = 640, height: int = 480, jpeg_quality: int = 80) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("Surface dimensions must be positive.")
        self.width = width
        self.height = height
        self.jpeg_quality = jpeg_quality
        self._frame: np.ndarray | None = None

    @property
    def has_frame(self) -> bool:
        return self._frame is not None

    @property
    def frame(self) -> np.ndarray | None:
        return self._frame

    def draw(self, frame: np.ndarray) -> None:
        h, w = frame.shape[:2]
        if (w, h) != (self.width, self.height):
            frame = cv2.resize(frame, (self.width, self.height), interpolation=cv2.INTER_AREA)
        self._frame = frame

    def encode(self) -> StillImage:
        """JPEG-encode the current contents.

        Raises :class:`RuntimeError` when nothing has been drawn or the
        encoder fails.
        """
        if self._frame is None:
            raise RuntimeError("Nothing has been drawn on the surface.")
        ok, buffer = cv2.imencode(
            ".jpg", self._frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality]
        )
        if not ok:
            raise RuntimeError("Failed to encode frame to JPEG")
        return StillImage(data=buffer.tobytes(), width=self.width, height=self.height)

    def clear(self) -> None:
        self._frame = None
