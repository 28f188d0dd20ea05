"""
Coarse progress reporting for transfer operations.

A ProgressSink receives percentage increments. A ProgressTracker sits in front
of a sink and enforces the ordering contract: increments are never negative and
the running total never passes the tracker's budget. Trackers can hand a slice
of their budget to a sub-operation through child().
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Union

from typing_extensions import override

LOGGER = logging.getLogger(__name__)

DEFAULT_BUDGET = 100.0


class ProgressSink(ABC):
    """
    Receives progress increments, fire-and-forget.
    """

    @abstractmethod
    def report(self, increment: float, message: Optional[str] = None) -> None:
        pass


class NullProgress(ProgressSink):
    @override
    def report(self, increment: float, message: Optional[str] = None) -> None:
        return None


class LoggingProgress(ProgressSink):
    """
    Writes every increment to the log at debug level.
    """

    def __init__(self, label: str = "transfer"):
        self.label = label
        self.total = 0.0

    @override
    def report(self, increment: float, message: Optional[str] = None) -> None:
        self.total += increment
        LOGGER.debug("%s progress +%.1f (%.1f%%) %s", self.label, increment, self.total, message or "")


class ProgressTracker(ProgressSink):
    """
    Budget-enforcing front for a ProgressSink.
    """

    def __init__(self, sink: Optional[ProgressSink] = None, budget: float = DEFAULT_BUDGET):
        assert budget > 0
        self.sink: ProgressSink = sink if sink is not None else NullProgress()
        self.budget: float = float(budget)
        self.reported: float = 0.0
        self._lock = threading.Lock()

    @property
    def remaining(self) -> float:
        return max(self.budget - self.reported, 0.0)

    @override
    def report(self, increment: float, message: Optional[str] = None) -> None:
        """
        Forward an increment, clamped to what is left of the budget.
        Increments that are not positive, or arrive once the budget is spent,
        are dropped.
        """
        with self._lock:
            allowed = min(float(increment), self.remaining)
            if allowed <= 0:
                return
            self.reported += allowed
        self.sink.report(allowed, message)

    def finish(self, message: Optional[str] = None) -> None:
        """Report whatever is left of the budget."""
        self.report(self.remaining, message)

    def child(self, share: float, budget: float = DEFAULT_BUDGET) -> "ProgressTracker":
        """
        Create a tracker with its own budget that maps onto `share` units of
        this tracker's budget.
        """
        return ProgressTracker(_ScaledSink(self, share / budget), budget)


class _ScaledSink(ProgressSink):
    def __init__(self, parent: ProgressTracker, factor: float):
        self.parent = parent
        self.factor = factor

    @override
    def report(self, increment: float, message: Optional[str] = None) -> None:
        self.parent.report(increment * self.factor, message)


def as_tracker(progress: Union[ProgressSink, None]) -> ProgressTracker:
    if isinstance(progress, ProgressTracker):
        return progress
    return ProgressTracker(progress)
