"""Offline event source with Poisson arrivals."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from .stream import StreamSource


@dataclass
class SyntheticStreamConfig:
    rate: float
    seed: Optional[int] = None


class SyntheticStreamSource(StreamSource):
    """Emits events with exponential inter-arrival times at a mean ``rate``/s."""

    def __init__(self, config: SyntheticStreamConfig) -> None:
        super().__init__()
        if config.rate <= 0:
            raise ValueError("rate must be > 0")
        self.config = config
        self._rng = np.random.default_rng(config.seed)

    @property
    def describe(self) -> str:
        return f"synthetic(rate={self.config.rate:g})"

    def next_gap(self) -> float:
        return float(self._rng.exponential(1.0 / self.config.rate))

    async def _run(self) -> None:
        logger.info("Synthetic stream started at {:g} events/s", self.config.rate)
        while True:
            await asyncio.sleep(self.next_gap())
            self._emit()
