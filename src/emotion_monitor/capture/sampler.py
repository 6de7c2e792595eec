"""Capture sampler — rate-limited, single-flight frame snapshots.

A capture attempt proceeds only when:

1. a live camera stream is available,
2. no other capture is still being classified (``processing``), and
3. at least ``min_interval`` seconds have passed since the previous
   *attempt*.

Blocked attempts are silent no-ops; the next timer tick simply tries
again.  The gate is time-based so that both the periodic countdown and
on-demand triggers share one limit.
"""

from __future__ import annotations

import time
from typing import Callable

import structlog

from emotion_monitor.capture.surface import FrameSurface, StillImage
from emotion_monitor.media.base import CameraStream

logger = structlog.get_logger(__name__)

DEFAULT_MIN_INTERVAL = 1.0


class CaptureSampler:
    """Turn the live camera stream into encoded stills, at most one at a time."""

    def __init__(
        self,
        surface: FrameSurface,
        *,
        min_interval: float = DEFAULT_MIN_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._surface = surface
        self._min_interval = min_interval
        self._clock = clock
        self._processing = False
        self._last_attempt: float | None = None

    @property
    def surface(self) -> FrameSurface:
        return self._surface

    @property
    def processing(self) -> bool:
        return self._processing

    def seconds_until_ready(self) -> float:
        """Time left before the rate gate opens (0 when open)."""
        if self._last_attempt is None:
            return 0.0
        return max(0.0, self._min_interval - (self._clock() - self._last_attempt))

    def begin(self, stream: CameraStream | None) -> StillImage | None:
        """Start a capture attempt.

        Returns the encoded still and leaves the sampler in the
        ``processing`` state, or returns ``None`` without side effects when
        the attempt is blocked.  Every non-``None`` return must be paired
        with :meth:`finish`.
        """
        if stream is None or not stream.active:
            logger.debug("sampler.skipped", reason="no_stream")
            return None
        if self._processing:
            logger.debug("sampler.skipped", reason="in_flight")
            return None

        now = self._clock()
        if self._last_attempt is not None:
            elapsed = now - self._last_attempt
            if elapsed < self._min_interval:
                logger.debug("sampler.rate_limited", elapsed_ms=int(elapsed * 1000))
                return None

        self._processing = True
        try:
            frame = stream.read_frame()
            if frame is None:
                self._processing = False
                logger.debug("sampler.skipped", reason="no_frame")
                return None
            self._surface.draw(frame)
            image = self._surface.encode()
        except Exception:
            self._processing = False
            raise

        self._last_attempt = now
        logger.debug("sampler.captured", bytes=len(image.data))
        return image

    def finish(self) -> None:
        self._processing = False
