"""Support popup — transient prompt for negative emotional states.

State machine
~~~~~~~~~~~~~
* **hidden → visible** when an event's emotion is in the trigger set.
* **visible → visible** on a new trigger: the pending auto-dismiss is
  cancelled and restarted, and only the latest emotion is shown.
* **visible → hidden** after the dismiss delay, or on :meth:`dismiss`.

:meth:`cancel` is for teardown: it drops the pending timer and leaves the
visible state untouched.
"""

from __future__ import annotations

import asyncio

import structlog

from emotion_monitor.models import Emotion, PopupState

logger = structlog.get_logger(__name__)

TRIGGER_EMOTIONS = frozenset({Emotion.STRESSED.value, Emotion.SAD.value})
DEFAULT_DISMISS_SECONDS = 8.0


class SupportPopup:
    """Auto-dismissing popup driven by the running event loop."""

    def __init__(
        self,
        dismiss_after: float = DEFAULT_DISMISS_SECONDS,
        triggers: frozenset[str] = TRIGGER_EMOTIONS,
    ) -> None:
        self._dismiss_after = dismiss_after
        self._triggers = triggers
        self._visible = False
        self._emotion: str | None = None
        self._handle: asyncio.TimerHandle | None = None

    # ── State ─────────────────────────────────────────────────

    @property
    def state(self) -> PopupState:
        return PopupState(visible=self._visible, emotion=self._emotion)

    @property
    def visible(self) -> bool:
        return self._visible

    @property
    def emotion(self) -> str | None:
        return self._emotion

    @property
    def pending(self) -> bool:
        """Whether an auto-dismiss is scheduled."""
        return self._handle is not None

    # ── Transitions ───────────────────────────────────────────

    def evaluate(self, emotion: str) -> bool:
        """Show the popup if *emotion* is a trigger.  Return ``True`` if shown."""
        if emotion not in self._triggers:
            return False
        self.show(emotion)
        return True

    def show(self, emotion: str) -> None:
        self._cancel_timer()
        self._emotion = emotion
        self._visible = True
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._dismiss_after, self._auto_dismiss)
        logger.info("popup.shown", emotion=emotion, dismiss_after=self._dismiss_after)

    def dismiss(self) -> None:
        self._cancel_timer()
        if self._visible:
            logger.info("popup.dismissed", emotion=self._emotion)
        self._visible = False

    def cancel(self) -> None:
        self._cancel_timer()

    # ── Internals ─────────────────────────────────────────────

    def _auto_dismiss(self) -> None:
        self._handle = None
        self._visible = False
        logger.debug("popup.auto_dismissed", emotion=self._emotion)

    def _cancel_timer(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
