"""Per-contender activity sampling and scoring."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from loguru import logger

from .scores import ScoreWindow
from .stats import average, population_std_dev, z_score
from .stream import StreamSource
from .timer import RepeatingTimer


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class Contender:
    """Identity of one competing feed."""

    country_code: str
    lang: str
    name: str
    side: Side
    ws_url: str


@dataclass
class SamplerConfig:
    window_seconds: float = 1.0
    max_scores: int = 20


NewCountCallback = Callable[[int, Side], None]


class Sampler:
    """
    Turns irregular event arrivals into per-window counts and z-scores.

    Every ``window_seconds`` the number of inter-arrival deltas collected since
    the previous close is scored against the mean and population standard
    deviation of all earlier window counts. The first event a sampler ever
    sees has nothing to subtract from, so it produces no delta and is not
    counted.
    """

    IDLE = "idle"
    LISTENING = "listening"
    STOPPED = "stopped"

    def __init__(
        self,
        contender: Contender,
        source: StreamSource,
        config: SamplerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.contender = contender
        self.source = source
        self.config = config or SamplerConfig()
        self._clock = clock

        self.current_bucket: List[float] = []
        self.window_counts: List[int] = []
        self.scores = ScoreWindow(capacity=self.config.max_scores)
        self.previous_arrival_time: Optional[float] = None

        self.state = self.IDLE
        self._on_new_count: Optional[NewCountCallback] = None
        self._timer: Optional[RepeatingTimer] = None

    @property
    def side(self) -> Side:
        return self.contender.side

    @property
    def aggregate_score(self) -> float:
        return self.scores.aggregate

    def __repr__(self) -> str:
        return (
            f"Sampler(lang={self.contender.lang!r}, side={self.side.value!r}, "
            f"aggregate={self.aggregate_score:.3f})"
        )

    def start(
        self,
        on_new_count: NewCountCallback,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        """Open the source and schedule the first window close."""
        if self.state == self.STOPPED:
            raise RuntimeError(f"Sampler for '{self.contender.lang}' was stopped")
        if self.state == self.LISTENING:
            return

        self._on_new_count = on_new_count
        self.state = self.LISTENING
        self._timer = RepeatingTimer(self.config.window_seconds, self.close_window, loop=loop)
        self._timer.start()
        try:
            self.source.open(self.handle_event, loop=loop)
        except (OSError, ValueError, RuntimeError) as exc:
            logger.error("Could not open stream for '{}': {}", self.contender.lang, exc)
            return
        logger.info(
            "Sampler '{}' ({}) listening on {}",
            self.contender.lang,
            self.side.value,
            self.source.describe,
        )

    def stop(self) -> None:
        """Detach from the source and cancel the pending window close."""
        if self.state == self.STOPPED:
            return
        self.state = self.STOPPED
        self._on_new_count = None
        self.source.close()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        logger.info("Sampler '{}' stopped", self.contender.lang)

    def handle_event(self) -> None:
        """Record the arrival time of one event."""
        now = self._clock()
        if self.previous_arrival_time is not None:
            self.current_bucket.append(now - self.previous_arrival_time)
        self.previous_arrival_time = now

    def close_window(self) -> int:
        """Close the current window, score it and notify. Returns the count."""
        deltas = self.current_bucket
        self.current_bucket = []
        new_count = len(deltas)

        score: Optional[float] = None
        if len(self.window_counts) >= 2:
            dataset_average = average(self.window_counts)
            dataset_std_dev = population_std_dev(self.window_counts)
            score = z_score(new_count, dataset_average, dataset_std_dev)
            self.scores.push(score)
        self.window_counts.append(new_count)

        logger.debug(
            "[{}] window {} count={} score={} aggregate={:.3f}",
            self.contender.lang,
            len(self.window_counts),
            new_count,
            "n/a" if score is None else f"{score:.3f}",
            self.aggregate_score,
        )

        callback = self._on_new_count
        if callback is not None:
            callback(new_count, self.side)
        return new_count
