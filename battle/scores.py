"""Sliding window of recent activity scores."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List

from .stats import average


@dataclass
class ScoreWindow:
    """Keeps the most recent ``capacity`` scores and their mean."""

    capacity: int = 20
    _scores: Deque[float] = field(default_factory=deque)
    aggregate: float = 0.0

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be >= 1")

    def push(self, score: float) -> float:
        """
        Append a score, evicting the oldest once capacity is exceeded.

        Returns the recomputed aggregate.
        """
        self._scores.append(score)
        while len(self._scores) > self.capacity:
            self._scores.popleft()
        self.aggregate = average(self._scores)
        return self.aggregate

    def values(self) -> List[float]:
        return list(self._scores)

    def reset(self) -> None:
        """Drop all scores."""
        self._scores.clear()
        self.aggregate = 0.0

    def __len__(self) -> int:
        return len(self._scores)
