"""Self-chaining repeating timer on the asyncio event loop."""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from loguru import logger


class RepeatingTimer:
    """
    Fire ``callback`` every ``period`` seconds until cancelled.

    The next beat is scheduled only after the callback has returned, so a slow
    callback delays later beats instead of overlapping them.
    """

    def __init__(
        self,
        period: float,
        callback: Callable[[], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        if period <= 0:
            raise ValueError("period must be > 0")
        self.period = period
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False
        self.beats = 0

    @property
    def active(self) -> bool:
        return self._handle is not None and not self._cancelled

    def start(self) -> None:
        """Schedule the first beat one period from now."""
        if self._cancelled:
            raise RuntimeError("timer was cancelled and cannot be restarted")
        if self._handle is not None:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._schedule()

    def cancel(self) -> None:
        """Cancel the pending beat. Safe to call more than once."""
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        if self._loop is None:
            raise RuntimeError("timer has no event loop")
        self._handle = self._loop.call_later(self.period, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        self.beats += 1
        try:
            self._callback()
        except Exception:
            logger.exception("Timer callback raised; keeping the beat")
        # The callback may have cancelled us (e.g. a stop issued from inside it).
        if not self._cancelled:
            self._schedule()
