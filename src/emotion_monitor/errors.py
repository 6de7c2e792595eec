"""Exception taxonomy for the emotion monitor.

Only :class:`PermissionDeniedError` is allowed to abort a session start.
Every :class:`ClassificationFailure` is absorbed by the session controller
and replaced with a simulated reading.
"""

from __future__ import annotations


class EmotionMonitorError(Exception):
    """Base class for all monitor errors."""


class PermissionDeniedError(EmotionMonitorError):
    """A media device could not be opened (absent, denied, or broken)."""

    def __init__(self, device: str, reason: str = "") -> None:
        self.device = device
        self.reason = reason
        super().__init__(f"{device} access denied" + (f": {reason}" if reason else ""))


class ClassificationFailure(EmotionMonitorError):
    """The external classifier did not produce a usable result."""


class ClassificationCancelled(ClassificationFailure):
    """The request was superseded before it was sent."""


class ClassifierNotConfigured(ClassificationFailure):
    """No credentials are configured for the classifier service."""
