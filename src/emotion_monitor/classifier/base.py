"""Abstract base class for emotion classifiers and the invalidation token."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from emotion_monitor.errors import ClassificationCancelled

if TYPE_CHECKING:
    from emotion_monitor.capture.surface import StillImage
    from emotion_monitor.models import ClassifierResult


class InvalidationToken:
    """Marks one classification request as superseded.

    Cancellation is best effort: classifiers check the token at
    convenient points, and a request that is already on the wire is
    allowed to complete.
    """

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ClassificationCancelled("Classification request was superseded.")


class EmotionClassifier(ABC):
    """Contract for external image → emotion services.

    Implementations raise :class:`~emotion_monitor.errors.ClassificationFailure`
    (or let transport errors escape; the adapter normalises them).
    """

    name: str = "base"

    @abstractmethod
    async def classify(self, image: StillImage, *, token: InvalidationToken) -> ClassifierResult:
        """Return the dominant emotion label and its confidence in ``[0, 1]``."""

    async def close(self) -> None:
        """Release any resources held by the classifier."""
