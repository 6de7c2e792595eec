"""Rolling emotion history and current-emotion tracking."""

from __future__ import annotations

from collections import Counter, deque

import structlog

from emotion_monitor.models import ClassificationEvent

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_SIZE = 12


class EmotionHistory:
    """Bounded, insertion-ordered buffer of classification events.

    The oldest event is evicted once *maxlen* is exceeded.  The label of
    the newest event is the *current emotion*.
    """

    def __init__(self, maxlen: int = DEFAULT_HISTORY_SIZE) -> None:
        if maxlen < 1:
            raise ValueError("History size must be at least 1.")
        self._events: deque[ClassificationEvent] = deque(maxlen=maxlen)
        self._current: str | None = None

    def record(self, event: ClassificationEvent) -> None:
        self._events.append(event)
        self._current = event.emotion
        logger.debug(
            "history.recorded",
            emotion=event.emotion,
            confidence=round(event.confidence, 3),
            size=len(self._events),
        )

    @property
    def current_emotion(self) -> str | None:
        return self._current

    @property
    def maxlen(self) -> int:
        return self._events.maxlen or DEFAULT_HISTORY_SIZE

    def events(self) -> list[ClassificationEvent]:
        """Events ordered oldest → newest."""
        return list(self._events)

    def dominant_emotion(self) -> str | None:
        """Most frequent label in the window (ties go to the most recent)."""
        if not self._events:
            return None
        counts = Counter(e.emotion for e in self._events)
        best = max(counts.values())
        for event in reversed(self._events):
            if counts[event.emotion] == best:
                return event.emotion
        return None

    def __len__(self) -> int:
        return len(self._events)
