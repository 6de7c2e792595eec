"""Session controller — permission acquisition and the sampling loop.

Architecture
~~~~~~~~~~~~
The controller is the single owner of every resource the loop holds: the
camera stream, the 1 Hz tick task, the delayed first-capture task, the
popup timer, and the in-flight :class:`InvalidationToken`.

Phases::

    idle ──start()──▶ starting ──both permissions──▶ analyzing
      ▲                   │                              │
      └──── denied ───────┘◀──────── stop() ─────────────┘

While analyzing, a countdown ticks once per second (3 → 2 → 1) and fires
a capture on the last tick.  Each capture runs as its own task:

1. the :class:`CaptureSampler` gates on stream, single-flight and rate limit,
2. the previous request token is invalidated and a new one issued,
3. the :class:`InferenceClient` resolves the emotion,
4. history, metrics and popup are updated — or, on any classifier
   failure, a simulated reading is recorded instead.

Late results from superseded or cancelled requests are still applied.
"""

from __future__ import annotations

import asyncio
import random
import time
from typing import TYPE_CHECKING, Any, Callable, Coroutine

import structlog

from emotion_monitor.affect.fallback import generate_fallback_event
from emotion_monitor.affect.history import EmotionHistory
from emotion_monitor.affect.metrics import derive_metrics
from emotion_monitor.affect.popup import SupportPopup
from emotion_monitor.capture.sampler import CaptureSampler
from emotion_monitor.capture.surface import FrameSurface
from emotion_monitor.classifier.adapter import InferenceClient
from emotion_monitor.classifier.base import InvalidationToken
from emotion_monitor.errors import ClassificationFailure
from emotion_monitor.media.base import CameraConstraints, CameraStream, MediaDevices
from emotion_monitor.models import (
    ClassificationEvent,
    DerivedMetrics,
    Emotion,
    NotificationLevel,
    PermissionState,
    SessionPhase,
    SessionSnapshot,
)
from emotion_monitor.notifications.handlers import NotificationDispatcher

if TYPE_CHECKING:
    from emotion_monitor.classifier.base import EmotionClassifier
    from emotion_monitor.config import Settings

logger = structlog.get_logger(__name__)

SEED_EMOTION = Emotion.NEUTRAL.value
SEED_CONFIDENCE = 0.8

MSG_CAMERA_DENIED = "Camera access denied. Please enable camera permissions and try again."
MSG_MIC_DENIED = "Microphone access denied. Please enable microphone permissions and try again."
MSG_PERMISSIONS_REQUIRED = "Both camera and microphone access are required for emotion detection"
MSG_STARTED = "Emotion detection started"
MSG_STOPPED = "Emotion detection stopped"
MSG_CLASSIFY_FAILED = "Error analyzing emotion. Using simulated data."


class SessionController:
    """Drive one user's emotion-monitoring session.

    Parameters
    ----------
    media : MediaDevices
        Opens the camera and microphone.
    inference : InferenceClient
        Resolves a still image to a classification event.
    dispatcher : NotificationDispatcher
        Receives user-visible toasts (fire-and-forget).
    surface : FrameSurface
        Drawing surface frames are captured into.
    min_capture_interval : float
        Minimum seconds between capture attempts.
    countdown_period : int
        Ticks between scheduled captures.
    tick_interval : float
        Seconds per countdown tick.
    first_capture_delay : float
        Delay before the immediate capture that follows a start.
    safety_net_seconds : float
        Force a simulated reading if no event was recorded for this long
        while analyzing.  ``0`` disables it.
    rng : random.Random
        Random source for metrics and simulated readings.
    clock : Callable[[], float]
        Monotonic clock used by the rate gate and the safety net.
    """

    def __init__(
        self,
        media: MediaDevices,
        inference: InferenceClient,
        *,
        dispatcher: NotificationDispatcher | None = None,
        surface: FrameSurface | None = None,
        camera_constraints: CameraConstraints | None = None,
        min_capture_interval: float = 1.0,
        countdown_period: int = 3,
        tick_interval: float = 1.0,
        first_capture_delay: float = 1.0,
        history_size: int = 12,
        popup_dismiss_after: float = 8.0,
        safety_net_seconds: float = 15.0,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._media = media
        self._inference = inference
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._constraints = camera_constraints or CameraConstraints()
        self._sampler = CaptureSampler(
            surface or FrameSurface(self._constraints.width, self._constraints.height),
            min_interval=min_capture_interval,
            clock=clock,
        )
        self._period = countdown_period
        self._tick_interval = tick_interval
        self._first_capture_delay = first_capture_delay
        self._safety_net = safety_net_seconds
        self._rng = rng or random.Random()
        self._clock = clock

        self._history = EmotionHistory(history_size)
        self._popup = SupportPopup(popup_dismiss_after)
        self._metrics = DerivedMetrics()

        self._phase = SessionPhase.IDLE
        self._camera_permission = PermissionState.UNKNOWN
        self._mic_permission = PermissionState.UNKNOWN
        self._camera: CameraStream | None = None
        self._token: InvalidationToken | None = None
        self._countdown = countdown_period
        self._last_event_at: float | None = None

        self._tick_task: asyncio.Task | None = None
        self._first_capture_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        media: MediaDevices,
        classifier: EmotionClassifier,
        *,
        dispatcher: NotificationDispatcher | None = None,
        **overrides: Any,
    ) -> SessionController:
        """Build a controller with timing and camera options from *settings*."""
        constraints = CameraConstraints(
            width=settings.camera_width,
            height=settings.camera_height,
            facing=settings.camera_facing,
            index=settings.camera_index,
        )
        options: dict[str, Any] = {
            "dispatcher": dispatcher,
            "camera_constraints": constraints,
            "surface": FrameSurface(
                settings.camera_width, settings.camera_height, settings.capture_jpeg_quality
            ),
            "min_capture_interval": settings.capture_min_interval_ms / 1000.0,
            "countdown_period": settings.countdown_period_ticks,
            "tick_interval": settings.tick_interval_seconds,
            "first_capture_delay": settings.first_capture_delay_seconds,
            "history_size": settings.history_size,
            "popup_dismiss_after": settings.popup_dismiss_seconds,
            "safety_net_seconds": settings.safety_net_seconds,
        }
        options.update(overrides)
        return cls(media, InferenceClient(classifier), **options)

    # ── State ─────────────────────────────────────────────────

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def is_analyzing(self) -> bool:
        return self._phase is SessionPhase.ANALYZING

    @property
    def camera_permission(self) -> PermissionState:
        return self._camera_permission

    @property
    def microphone_permission(self) -> PermissionState:
        return self._mic_permission

    @property
    def camera_stream(self) -> CameraStream | None:
        return self._camera

    @property
    def surface(self) -> FrameSurface:
        return self._sampler.surface

    @property
    def history(self) -> EmotionHistory:
        return self._history

    @property
    def current_emotion(self) -> str | None:
        return self._history.current_emotion

    @property
    def metrics(self) -> DerivedMetrics:
        return self._metrics

    @property
    def countdown(self) -> int:
        return self._countdown

    @property
    def processing(self) -> bool:
        return self._sampler.processing

    @property
    def popup(self) -> SupportPopup:
        return self._popup

    @property
    def in_flight_token(self) -> InvalidationToken | None:
        return self._token

    @property
    def timer_running(self) -> bool:
        return self._tick_task is not None

    @property
    def inference(self) -> InferenceClient:
        return self._inference

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            phase=self._phase,
            is_analyzing=self.is_analyzing,
            camera_permission=self._camera_permission,
            microphone_permission=self._mic_permission,
            current_emotion=self._history.current_emotion,
            dominant_emotion=self._history.dominant_emotion(),
            history=self._history.events(),
            metrics=self._metrics,
            countdown=self._countdown,
            processing=self._sampler.processing,
            next_capture_ready_in=self._sampler.seconds_until_ready(),
            popup=self._popup.state,
        )

    # ── Permissions ───────────────────────────────────────────

    async def acquire_camera(self) -> bool:
        """Open the camera, replacing any stream already held."""
        self._release_camera()
        try:
            stream = await self._media.open_camera(self._constraints)
        except Exception as exc:
            self._camera_permission = PermissionState.DENIED
            logger.warning("session.camera_denied", error=str(exc))
            self._notify(NotificationLevel.ERROR, MSG_CAMERA_DENIED)
            return False

        self._camera_permission = PermissionState.GRANTED
        self._camera = stream
        logger.info("session.camera_granted")
        try:
            await stream.play()
        except Exception:
            logger.exception("session.camera_playback_failed")
        return True

    async def acquire_microphone(self) -> bool:
        """Check microphone access.  A previous grant is reused."""
        if self._mic_permission is PermissionState.GRANTED:
            return True
        try:
            stream = await self._media.open_microphone()
        except Exception as exc:
            self._mic_permission = PermissionState.DENIED
            logger.warning("session.microphone_denied", error=str(exc))
            self._notify(NotificationLevel.ERROR, MSG_MIC_DENIED)
            return False

        self._mic_permission = PermissionState.GRANTED
        stream.stop()
        logger.info("session.microphone_granted")
        return True

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> bool:
        """Acquire devices and begin analyzing.  Return ``True`` on success."""
        if self._phase is SessionPhase.ANALYZING:
            logger.info("session.already_analyzing")
            return True
        if self._phase is not SessionPhase.IDLE:
            logger.warning("session.start_ignored", phase=self._phase.value)
            return False

        self._phase = SessionPhase.STARTING
        logger.info("session.starting")
        self._release_camera()

        has_camera = await self.acquire_camera()
        has_mic = await self.acquire_microphone()

        if self._phase is not SessionPhase.STARTING:
            # stop() ran while devices were being opened.
            self._release_camera()
            return False

        if not (has_camera and has_mic):
            self._release_camera()
            self._phase = SessionPhase.IDLE
            self._notify(NotificationLevel.ERROR, MSG_PERMISSIONS_REQUIRED)
            logger.info("session.start_denied", camera=has_camera, microphone=has_mic)
            return False

        self._phase = SessionPhase.ANALYZING
        self._countdown = self._period
        self._notify(NotificationLevel.SUCCESS, MSG_STARTED)

        if self._history.current_emotion is None:
            self._record(ClassificationEvent(emotion=SEED_EMOTION, confidence=SEED_CONFIDENCE))

        self._first_capture_task = asyncio.create_task(self._delayed_first_capture())
        if self._tick_task is None:
            self._tick_task = asyncio.create_task(self._run_ticks())

        logger.info(
            "session.started",
            tick_interval=self._tick_interval,
            countdown_period=self._period,
        )
        return True

    def stop(self) -> None:
        """Stop analyzing and release everything.  Safe to call in any phase."""
        previous = self._phase
        self._phase = SessionPhase.STOPPING

        for task in (self._tick_task, self._first_capture_task):
            if task is not None and not task.done():
                task.cancel()
        self._tick_task = None
        self._first_capture_task = None

        self._release_camera()
        self._invalidate_request()

        self._phase = SessionPhase.IDLE
        self._notify(NotificationLevel.INFO, MSG_STOPPED)
        logger.info("session.stopped", previous_phase=previous.value)

    def dispose(self) -> None:
        """Permanent teardown: stop, drop background work, cancel the popup timer."""
        for task in list(self._background):
            task.cancel()
        self.stop()
        self._popup.cancel()
        logger.info("session.disposed")

    async def drain(self) -> None:
        """Wait until scheduled captures and notifications have finished."""
        while pending := [t for t in self._background if not t.done()]:
            await asyncio.gather(*pending, return_exceptions=True)

    def dismiss_popup(self) -> None:
        self._popup.dismiss()

    # ── Capture & inference ───────────────────────────────────

    async def capture_frame(self) -> ClassificationEvent | None:
        """Capture, classify and record one frame.

        Returns the recorded event (real or simulated), or ``None`` when the
        attempt was skipped (not analyzing, no stream, in flight, or rate
        limited).
        """
        if not self.is_analyzing:
            logger.debug("session.capture_skipped", reason="not_analyzing")
            return None

        image = self._sampler.begin(self._camera)
        if image is None:
            return None

        self._invalidate_request()
        token = self._token = InvalidationToken()
        self._countdown = self._period

        try:
            event = await self._inference.classify(image, token)
        except ClassificationFailure as exc:
            logger.warning("session.classification_failed", error=str(exc))
            self._notify(NotificationLevel.ERROR, MSG_CLASSIFY_FAILED)
            return self.force_update()
        finally:
            self._sampler.finish()
            if self._token is token:
                self._token = None

        self._record(event)
        self._popup.evaluate(event.emotion)
        self._notify(NotificationLevel.INFO, f"Emotion detected: {event.emotion}")
        logger.info(
            "session.emotion_detected",
            emotion=event.emotion,
            confidence=round(event.confidence, 3),
        )
        return event

    def force_update(self) -> ClassificationEvent | None:
        """Record a simulated reading.  No-op unless analyzing."""
        if not self.is_analyzing:
            return None
        event = generate_fallback_event(self._rng)
        self._record(event)
        logger.info("session.forced_update", emotion=event.emotion)
        return event

    # ── Countdown ─────────────────────────────────────────────

    def tick(self) -> None:
        """Advance the countdown by one step; capture when it runs out."""
        if self._countdown <= 1:
            self._countdown = self._period
            self._spawn(self._capture_or_force())
        else:
            self._countdown -= 1

        if (
            self._safety_net > 0
            and self._last_event_at is not None
            and self._clock() - self._last_event_at >= self._safety_net
        ):
            self.force_update()

    # ── Internals ─────────────────────────────────────────────

    def _record(self, event: ClassificationEvent) -> None:
        self._history.record(event)
        self._metrics = derive_metrics(event.emotion, self._rng)
        self._last_event_at = self._clock()

    async def _run_ticks(self) -> None:
        while True:
            await asyncio.sleep(self._tick_interval)
            self.tick()

    async def _delayed_first_capture(self) -> None:
        await asyncio.sleep(self._first_capture_delay)
        self._first_capture_task = None
        self._spawn(self._capture_or_force())

    async def _capture_or_force(self) -> None:
        try:
            await self.capture_frame()
        except Exception:
            logger.exception("session.capture_error")
            self.force_update()

    def _invalidate_request(self) -> None:
        if self._token is not None:
            self._token.cancel()
            self._token = None

    def _release_camera(self) -> None:
        if self._camera is not None:
            self._camera.stop()
            self._camera = None
        self._sampler.surface.clear()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _notify(self, level: NotificationLevel, message: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Teardown from synchronous code: nothing can deliver the toast.
            logger.info("session.notification_dropped", level=level.value, message=message)
            return
        self._spawn(self._dispatcher.notify(level, message))
