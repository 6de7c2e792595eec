"""Inference client adapter — classifier call → classification event."""

from __future__ import annotations

import structlog

from emotion_monitor.capture.surface import StillImage
from emotion_monitor.classifier.base import EmotionClassifier, InvalidationToken
from emotion_monitor.errors import ClassificationFailure
from emotion_monitor.models import ClassificationEvent

logger = structlog.get_logger(__name__)


class InferenceClient:
    """Invoke an :class:`EmotionClassifier` and normalise its outcome.

    Success yields a timestamped :class:`ClassificationEvent` carrying the
    service's label and confidence verbatim.  Every failure mode
    (transport, HTTP status, bad payload, cancellation) surfaces as
    :class:`ClassificationFailure`.  No retries happen here.
    """

    def __init__(self, classifier: EmotionClassifier) -> None:
        self._classifier = classifier

    @property
    def classifier(self) -> EmotionClassifier:
        return self._classifier

    async def classify(self, image: StillImage, token: InvalidationToken) -> ClassificationEvent:
        token.raise_if_cancelled()
        try:
            result = await self._classifier.classify(image, token=token)
            event = ClassificationEvent(emotion=result.emotion, confidence=result.confidence)
        except ClassificationFailure:
            raise
        except Exception as exc:
            raise ClassificationFailure(f"{type(exc).__name__}: {exc}") from exc

        if token.cancelled:
            # Completed after being superseded; still returned to the caller.
            logger.info("inference.late_result", emotion=event.emotion)
        return event

    async def close(self) -> None:
        await self._classifier.close()
