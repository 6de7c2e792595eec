"""Metric mapper — emotion label → stress / engagement / focus.

Every metric is drawn independently from an emotion-specific band on each
call.  Nothing is carried over from previous readings: a new event fully
replaces the previous metric values.

Bands are expressed as ``(base, width)``; the drawn value is
``base + randrange(width)``, i.e. the closed interval
``[base, base + width - 1]``.
"""

from __future__ import annotations

import random

from emotion_monitor.models import DerivedMetrics, Emotion

Band = tuple[int, int]

# ── Band tables ───────────────────────────────────────────────

STRESS_BANDS: dict[Emotion, Band] = {
    Emotion.STRESSED: (75, 25),
    Emotion.CONFUSED: (50, 25),
    Emotion.SAD: (60, 20),
    Emotion.NEUTRAL: (20, 20),
    Emotion.FOCUSED: (10, 15),
    Emotion.HAPPY: (5, 10),
}
STRESS_DEFAULT: Band = (15, 20)

ENGAGEMENT_BANDS: dict[Emotion, Band] = {
    Emotion.FOCUSED: (80, 20),
    Emotion.HAPPY: (80, 20),
    Emotion.NEUTRAL: (50, 30),
    Emotion.SAD: (20, 30),
    Emotion.STRESSED: (15, 25),
}
ENGAGEMENT_DEFAULT: Band = (30, 40)

FOCUS_BANDS: dict[Emotion, Band] = {
    Emotion.FOCUSED: (85, 15),
    Emotion.HAPPY: (70, 20),
    Emotion.NEUTRAL: (50, 20),
    Emotion.SAD: (20, 20),
}
FOCUS_DEFAULT: Band = (30, 30)


def _as_emotion(label: str | Emotion) -> Emotion | None:
    try:
        return Emotion(label)
    except ValueError:
        return None


def band_for(table: dict[Emotion, Band], default: Band, label: str | Emotion) -> Band:
    """Look up the band for *label*, falling back to *default*."""
    emotion = _as_emotion(label)
    if emotion is None:
        return default
    return table.get(emotion, default)


def _draw(band: Band, rng: random.Random) -> int:
    base, width = band
    return base + rng.randrange(width)


def derive_metrics(label: str | Emotion, rng: random.Random | None = None) -> DerivedMetrics:
    """Return freshly drawn metrics for an emotion label.

    Unrecognised labels use the default bands.
    """
    rng = rng or random.Random()
    return DerivedMetrics(
        stress=_draw(band_for(STRESS_BANDS, STRESS_DEFAULT, label), rng),
        engagement=_draw(band_for(ENGAGEMENT_BANDS, ENGAGEMENT_DEFAULT, label), rng),
        focus=_draw(band_for(FOCUS_BANDS, FOCUS_DEFAULT, label), rng),
    )
