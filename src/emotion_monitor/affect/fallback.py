"""Synthetic emotion events used when the classifier is unavailable."""

from __future__ import annotations

import random

from emotion_monitor.models import ClassificationEvent, Emotion

# Labels the classifier path can produce.
CLASSIFIER_EMOTIONS: tuple[Emotion, ...] = (
    Emotion.HAPPY,
    Emotion.FOCUSED,
    Emotion.NEUTRAL,
    Emotion.CONFUSED,
    Emotion.SAD,
    Emotion.STRESSED,
)

# Superset drawn from by the fallback generator.
FALLBACK_EMOTIONS: tuple[Emotion, ...] = CLASSIFIER_EMOTIONS + (Emotion.BORED,)

FALLBACK_CONFIDENCE_FLOOR = 0.7
FALLBACK_CONFIDENCE_SPAN = 0.3


def generate_fallback_event(rng: random.Random | None = None) -> ClassificationEvent:
    """Pick a label uniformly at random with confidence in ``[0.7, 1.0)``."""
    rng = rng or random.Random()
    emotion = rng.choice(FALLBACK_EMOTIONS)
    confidence = FALLBACK_CONFIDENCE_FLOOR + rng.random() * FALLBACK_CONFIDENCE_SPAN
    return ClassificationEvent(emotion=emotion.value, confidence=confidence)
