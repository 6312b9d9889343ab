"""Head-to-head comparison of two samplers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger

from .sampler import NewCountCallback, Sampler, Side


@dataclass
class ComparatorConfig:
    # Resolve an exact tie in favour of the right-hand sampler.
    right_wins_ties: bool = False


WinnerCallback = Callable[[Sampler], None]


class Comparator:
    """Tracks which of two samplers is currently the more abnormally active."""

    def __init__(
        self,
        left: Sampler,
        right: Sampler,
        on_new_count: NewCountCallback,
        on_winner_changed: WinnerCallback,
        config: ComparatorConfig | None = None,
    ) -> None:
        if left.side is not Side.LEFT or right.side is not Side.RIGHT:
            raise ValueError(
                f"Comparator needs a left and a right sampler, got "
                f"{left.side.value!r} and {right.side.value!r}"
            )
        self.left = left
        self.right = right
        self.config = config or ComparatorConfig()
        self.leader: Optional[Sampler] = None
        self._on_new_count = on_new_count
        self._on_winner_changed = on_winner_changed
        self._running = False

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Start both samplers."""
        self._running = True
        self.left.start(self._handle_new_count, loop=loop)
        self.right.start(self._handle_new_count, loop=loop)

    def stop(self) -> None:
        """Stop both samplers. No callbacks fire afterwards."""
        self._running = False
        self.left.stop()
        self.right.stop()

    def candidate_leader(self) -> Optional[Sampler]:
        """Return the sampler with the strictly higher aggregate score."""
        left_score = self.left.aggregate_score
        right_score = self.right.aggregate_score
        if left_score > right_score:
            return self.left
        if right_score > left_score:
            return self.right
        if self.config.right_wins_ties:
            return self.right
        return self.leader

    def _handle_new_count(self, count: int, side: Side) -> None:
        if not self._running:
            return
        self._on_new_count(count, side)

        previous_side = self.leader.side if self.leader is not None else None
        candidate = self.candidate_leader()
        if candidate is None or candidate.side == previous_side:
            return

        self.leader = candidate
        logger.info(
            "Leader is now {} ({}) with aggregate {:.3f} vs {:.3f}",
            candidate.contender.name,
            candidate.side.value,
            candidate.aggregate_score,
            (self.right if candidate is self.left else self.left).aggregate_score,
        )
        self._on_winner_changed(candidate)
