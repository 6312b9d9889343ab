"""
Shared pytest fixtures for edit-battle tests.
"""

import asyncio

import pytest

from battle.sampler import Contender, Sampler, SamplerConfig, Side


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


class FakeSource:
    """Stream source driven by the test through ``fire``."""

    describe = "fake"

    def __init__(self):
        self.on_event = None
        self.open_calls = 0
        self.close_calls = 0

    def open(self, on_event, loop=None):
        self.open_calls += 1
        self.on_event = on_event

    def close(self):
        self.close_calls += 1
        self.on_event = None

    def fire(self, times: int = 1) -> None:
        for _ in range(times):
            if self.on_event is not None:
                self.on_event()


def make_contender(side: Side, lang: str | None = None) -> Contender:
    lang = lang or ("en" if side is Side.LEFT else "de")
    return Contender(
        country_code=lang,
        lang=lang,
        name=lang.upper(),
        side=side,
        ws_url=f"ws://example.invalid/{lang}",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def loop():
    """
    An event loop that is never run.

    Timers scheduled on it never fire, so tests drive window closes by hand.
    """
    event_loop = asyncio.new_event_loop()
    yield event_loop
    event_loop.close()


@pytest.fixture
def make_sampler(clock):
    def factory(side: Side = Side.LEFT, lang: str | None = None, max_scores: int = 20):
        return Sampler(
            make_contender(side, lang),
            FakeSource(),
            SamplerConfig(window_seconds=1.0, max_scores=max_scores),
            clock=clock,
        )

    return factory
