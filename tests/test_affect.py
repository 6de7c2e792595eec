"""Tests for the affect aggregation layer: metrics, fallback, history, popup."""

from __future__ import annotations

import asyncio
import random

import pytest

from emotion_monitor.affect.fallback import FALLBACK_EMOTIONS, generate_fallback_event
from emotion_monitor.affect.history import EmotionHistory
from emotion_monitor.affect.metrics import derive_metrics
from emotion_monitor.affect.popup import SupportPopup
from emotion_monitor.models import ClassificationEvent, Emotion

# emotion → (stress, engagement, focus), closed intervals
EXPECTED_BANDS = {
    "stressed": ((75, 99), (15, 39), (30, 59)),
    "confused": ((50, 74), (30, 69), (30, 59)),
    "sad": ((60, 79), (20, 49), (20, 39)),
    "neutral": ((20, 39), (50, 79), (50, 69)),
    "focused": ((10, 24), (80, 99), (85, 99)),
    "happy": ((5, 14), (80, 99), (70, 89)),
    "bored": ((15, 34), (30, 69), (30, 59)),
    "surprised": ((15, 34), (30, 69), (30, 59)),
}


# ── Metric mapper ─────────────────────────────────────────────


class TestDeriveMetrics:
    @pytest.mark.parametrize("emotion", sorted(EXPECTED_BANDS))
    def test_values_stay_within_bands(self, emotion):
        (s_lo, s_hi), (e_lo, e_hi), (f_lo, f_hi) = EXPECTED_BANDS[emotion]
        rng = random.Random(7)
        for _ in range(300):
            m = derive_metrics(emotion, rng)
            assert s_lo <= m.stress <= s_hi
            assert e_lo <= m.engagement <= e_hi
            assert f_lo <= m.focus <= f_hi

    def test_band_edges_are_reachable(self):
        rng = random.Random(11)
        stress = {derive_metrics("happy", rng).stress for _ in range(1000)}
        assert stress == set(range(5, 15))

    def test_accepts_enum_members(self):
        m = derive_metrics(Emotion.FOCUSED, random.Random(3))
        assert 85 <= m.focus <= 99

    def test_same_seed_same_metrics(self):
        a = derive_metrics("neutral", random.Random(42))
        b = derive_metrics("neutral", random.Random(42))
        assert a == b


# ── Fallback generator ────────────────────────────────────────


class TestFallbackGenerator:
    def test_label_and_confidence_ranges(self):
        rng = random.Random(5)
        labels = {e.value for e in FALLBACK_EMOTIONS}
        for _ in range(500):
            event = generate_fallback_event(rng)
            assert event.emotion in labels
            assert 0.7 <= event.confidence < 1.0

    def test_all_seven_labels_are_drawn(self):
        rng = random.Random(9)
        seen = {generate_fallback_event(rng).emotion for _ in range(700)}
        assert seen == {e.value for e in FALLBACK_EMOTIONS}
        assert "bored" in seen

    def test_events_are_immutable(self):
        event = generate_fallback_event(random.Random(1))
        with pytest.raises(Exception):
            event.emotion = "happy"  # type: ignore[misc]


# ── History ───────────────────────────────────────────────────


class TestEmotionHistory:
    def test_bounded_to_most_recent_twelve(self):
        history = EmotionHistory()
        events = [ClassificationEvent(emotion=f"e{i}", confidence=0.5) for i in range(30)]
        for i, event in enumerate(events, start=1):
            history.record(event)
            assert len(history) == min(i, 12)
        assert history.events() == events[-12:]
        assert history.current_emotion == "e29"

    def test_empty_history(self):
        history = EmotionHistory()
        assert history.current_emotion is None
        assert history.dominant_emotion() is None

    def test_dominant_emotion_prefers_recent_on_tie(self):
        history = EmotionHistory(maxlen=4)
        for label in ("sad", "happy", "sad", "happy"):
            history.record(ClassificationEvent(emotion=label, confidence=0.9))
        assert history.dominant_emotion() == "happy"

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            EmotionHistory(maxlen=0)


# ── Support popup ─────────────────────────────────────────────


class TestSupportPopup:
    @pytest.mark.asyncio
    async def test_retrigger_restarts_dismiss_timer(self):
        popup = SupportPopup(dismiss_after=0.3)
        assert popup.evaluate("stressed") is True
        await asyncio.sleep(0.2)
        assert popup.evaluate("sad") is True

        await asyncio.sleep(0.2)  # 0.4 s after the first trigger
        assert popup.state.visible is True
        assert popup.state.emotion == "sad"

        await asyncio.sleep(0.25)  # 0.45 s after the second trigger
        assert popup.visible is False
        assert popup.pending is False

    @pytest.mark.asyncio
    async def test_non_trigger_emotions_are_ignored(self):
        popup = SupportPopup(dismiss_after=0.1)
        for label in ("happy", "neutral", "focused", "confused", "bored"):
            assert popup.evaluate(label) is False
        assert popup.visible is False
        assert popup.pending is False

    @pytest.mark.asyncio
    async def test_manual_dismiss(self):
        popup = SupportPopup(dismiss_after=5.0)
        popup.evaluate("sad")
        popup.dismiss()
        assert popup.visible is False
        assert popup.pending is False

    @pytest.mark.asyncio
    async def test_cancel_keeps_visible_state(self):
        popup = SupportPopup(dismiss_after=0.05)
        popup.evaluate("stressed")
        popup.cancel()
        await asyncio.sleep(0.1)
        assert popup.visible is True
        assert popup.emotion == "stressed"
        assert popup.pending is False
