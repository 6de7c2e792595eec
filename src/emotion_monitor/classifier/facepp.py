"""Face++ emotion classifier.

Sends one JPEG still to the Face++ *Detect* endpoint with
``return_attributes=emotion`` and maps the dominant Face++ emotion onto
the monitor's labels:

==========================  ==========================
Face++ emotion              Monitor label
==========================  ==========================
happiness                   happy
sadness                     sad
anger / fear / disgust      stressed
surprise                    confused
neutral (score ≥ focus)     focused
neutral                     neutral
==========================  ==========================

Face++ reports scores in ``[0, 100]``; confidence is ``score / 100``.
"""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from emotion_monitor.classifier.base import EmotionClassifier, InvalidationToken
from emotion_monitor.errors import ClassificationFailure, ClassifierNotConfigured
from emotion_monitor.models import ClassifierResult, Emotion

if TYPE_CHECKING:
    from emotion_monitor.capture.surface import StillImage
    from emotion_monitor.config import Settings

logger = structlog.get_logger(__name__)

_EMOTION_MAP: dict[str, Emotion] = {
    "happiness": Emotion.HAPPY,
    "sadness": Emotion.SAD,
    "anger": Emotion.STRESSED,
    "fear": Emotion.STRESSED,
    "disgust": Emotion.STRESSED,
    "surprise": Emotion.CONFUSED,
    "neutral": Emotion.NEUTRAL,
}


def map_facepp_emotion(scores: dict[str, float], focus_threshold: float = 80.0) -> ClassifierResult:
    """Reduce a Face++ emotion score dict to one labelled result."""
    known = {k: float(v) for k, v in scores.items() if k in _EMOTION_MAP}
    if not known:
        raise ClassificationFailure(f"No recognised emotion scores in {sorted(scores)}")

    dominant, score = max(known.items(), key=lambda kv: kv[1])
    emotion = _EMOTION_MAP[dominant]
    if emotion is Emotion.NEUTRAL and score >= focus_threshold:
        emotion = Emotion.FOCUSED

    confidence = min(max(score / 100.0, 0.0), 1.0)
    return ClassifierResult(emotion=emotion.value, confidence=confidence)


class FacePlusPlusClassifier(EmotionClassifier):
    """Classify frames with the Face++ Detect API."""

    name = "facepp"

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        *,
        url: str = "https://api-us.faceplusplus.com/facepp/v3/detect",
        timeout: float = 10.0,
        focus_threshold: float = 80.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._url = url
        self._focus_threshold = focus_threshold
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._api_secret)

    async def classify(self, image: StillImage, *, token: InvalidationToken) -> ClassifierResult:
        if not self.configured:
            raise ClassifierNotConfigured("Face++ API key/secret are not set.")

        token.raise_if_cancelled()
        resp = await self._client.post(
            self._url,
            data={
                "api_key": self._api_key,
                "api_secret": self._api_secret,
                "image_base64": base64.b64encode(image.data).decode("ascii"),
                "return_attributes": "emotion",
            },
        )
        resp.raise_for_status()
        payload: dict[str, Any] = resp.json()

        if payload.get("error_message"):
            raise ClassificationFailure(f"Face++ error: {payload['error_message']}")

        faces = payload.get("faces") or []
        if not faces:
            raise ClassificationFailure("No face detected in frame.")

        scores = (faces[0].get("attributes") or {}).get("emotion") or {}
        result = map_facepp_emotion(scores, self._focus_threshold)
        logger.debug(
            "facepp.classified",
            emotion=result.emotion,
            confidence=round(result.confidence, 3),
            faces=len(faces),
            request_id=payload.get("request_id"),
        )
        return result

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def create_classifier(settings: Settings) -> FacePlusPlusClassifier:
    """Build the Face++ classifier from application settings."""
    if not (settings.facepp_api_key and settings.facepp_api_secret):
        logger.warning("facepp.not_configured", hint="set FACEPP_API_KEY and FACEPP_API_SECRET")
    return FacePlusPlusClassifier(
        settings.facepp_api_key,
        settings.facepp_api_secret,
        url=settings.facepp_api_url,
        timeout=settings.classifier_timeout_seconds,
        focus_threshold=settings.facepp_focus_threshold,
    )
