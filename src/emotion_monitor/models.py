"""Shared Pydantic models used across the monitor."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ── Enums ─────────────────────────────────────────────────────


class Emotion(str, Enum):
    """Emotion labels the monitor knows how to interpret."""

    HAPPY = "happy"
    FOCUSED = "focused"
    NEUTRAL = "neutral"
    CONFUSED = "confused"
    SAD = "sad"
    STRESSED = "stressed"
    BORED = "bored"


class PermissionState(str, Enum):
    UNKNOWN = "unknown"
    GRANTED = "granted"
    DENIED = "denied"


class SessionPhase(str, Enum):
    """Lifecycle phases of a monitoring session."""

    IDLE = "idle"
    STARTING = "starting"
    ANALYZING = "analyzing"
    STOPPING = "stopping"


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ── Data transfer objects ─────────────────────────────────────


class ClassificationEvent(BaseModel):
    """One recorded emotion observation.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    emotion: str
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=_utcnow)


class ClassifierResult(BaseModel):
    """Raw answer from an external classifier."""

    emotion: str
    confidence: float


class DerivedMetrics(BaseModel):
    """Wellbeing metrics recomputed from scratch on every event."""

    stress: int = Field(0, ge=0, le=100)
    engagement: int = Field(0, ge=0, le=100)
    focus: int = Field(0, ge=0, le=100)


class PopupState(BaseModel):
    visible: bool = False
    emotion: str | None = None


class Notification(BaseModel):
    """A fire-and-forget, user-visible message (toast)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    level: NotificationLevel
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)


class SessionSnapshot(BaseModel):
    """Read-only view of the session for the presentation layer."""

    phase: SessionPhase
    is_analyzing: bool
    camera_permission: PermissionState
    microphone_permission: PermissionState
    current_emotion: str | None = None
    dominant_emotion: str | None = None
    history: list[ClassificationEvent] = Field(default_factory=list)
    metrics: DerivedMetrics = Field(default_factory=DerivedMetrics)
    countdown: int
    processing: bool = False
    next_capture_ready_in: float = 0.0
    popup: PopupState = Field(default_factory=PopupState)
