"""Affect aggregation — metric mapping, fallback events, history and support popup.

1. **Metric mapper** (`metrics.py`) — stateless emotion → metric bands.
2. **Fallback generator** (`fallback.py`) — synthetic events when the
   classifier cannot answer.
3. **History** (`history.py`) — 12-entry rolling window + current emotion.
4. **Support popup** (`popup.py`) — auto-dismissing prompt for stressed
   or sad readings.
"""

from emotion_monitor.affect.fallback import FALLBACK_EMOTIONS, generate_fallback_event
from emotion_monitor.affect.history import EmotionHistory
from emotion_monitor.affect.metrics import derive_metrics
from emotion_monitor.affect.popup import TRIGGER_EMOTIONS, SupportPopup

__all__ = [
    "EmotionHistory",
    "FALLBACK_EMOTIONS",
    "SupportPopup",
    "TRIGGER_EMOTIONS",
    "derive_metrics",
    "generate_fallback_event",
]
