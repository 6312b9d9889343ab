"""Unit tests for Sampler window bucketing and scoring."""

import asyncio
import math

import pytest
from loguru import logger

from battle.sampler import Sampler, SamplerConfig, Side
from battle.stream import open_source


def fill_bucket(sampler: Sampler, count: int) -> None:
    sampler.current_bucket = [0.1] * count


class TestEventHandling:
    def test_first_event_records_no_delta(self, make_sampler):
        sampler = make_sampler()
        sampler.handle_event()

        assert sampler.current_bucket == []
        assert sampler.previous_arrival_time == 100.0

    def test_later_events_record_inter_arrival_deltas(self, make_sampler, clock):
        sampler = make_sampler()
        sampler.handle_event()
        clock.advance(0.25)
        sampler.handle_event()
        clock.advance(0.5)
        sampler.handle_event()

        assert sampler.current_bucket == pytest.approx([0.25, 0.5])

    def test_first_window_undercounts_first_event(self, make_sampler):
        sampler = make_sampler()
        sampler.handle_event()
        assert sampler.close_window() == 0

    def test_previous_arrival_survives_window_close(self, make_sampler, clock):
        sampler = make_sampler()
        sampler.handle_event()
        sampler.close_window()
        clock.advance(1.5)
        sampler.handle_event()

        assert sampler.current_bucket == pytest.approx([1.5])


class TestWindowClose:
    def test_window_counts_grow_by_one_per_close(self, make_sampler):
        sampler = make_sampler()
        for expected in range(1, 6):
            sampler.close_window()
            assert len(sampler.window_counts) == expected

    def test_bucket_is_cleared(self, make_sampler):
        sampler = make_sampler()
        fill_bucket(sampler, 3)
        assert sampler.close_window() == 3
        assert sampler.current_bucket == []

    def test_scoring_skipped_until_two_baseline_points(self, make_sampler):
        sampler = make_sampler()
        fill_bucket(sampler, 5)
        sampler.close_window()
        fill_bucket(sampler, 5)
        sampler.close_window()

        assert len(sampler.scores) == 0
        assert sampler.aggregate_score == 0.0
        assert sampler.window_counts == [5, 5]

    def test_identical_baseline_scores_zero(self, make_sampler):
        sampler = make_sampler()
        for _ in range(2):
            fill_bucket(sampler, 5)
            sampler.close_window()

        fill_bucket(sampler, 42)
        sampler.close_window()

        assert sampler.scores.values() == [0.0]

    def test_flat_baseline_ignores_new_count(self, make_sampler):
        sampler = make_sampler()
        sampler.window_counts = [10, 10, 10]
        fill_bucket(sampler, 16)
        sampler.close_window()

        assert sampler.scores.values() == [0.0]
        assert not math.isnan(sampler.aggregate_score)

    def test_z_score_against_full_history(self, make_sampler):
        sampler = make_sampler()
        sampler.window_counts = [4, 6, 5, 5]
        fill_bucket(sampler, 9)
        sampler.close_window()

        assert sampler.aggregate_score == pytest.approx(4 / math.sqrt(0.5))
        assert sampler.window_counts == [4, 6, 5, 5, 9]

    def test_new_count_excluded_from_own_baseline(self, make_sampler):
        sampler = make_sampler()
        sampler.window_counts = [1, 3]
        fill_bucket(sampler, 4)
        sampler.close_window()

        # mean 2, std 1: (4 - 2) / 1
        assert sampler.scores.values() == [2.0]

    def test_aggregate_uses_last_twenty_scores(self, make_sampler):
        sampler = make_sampler()
        sampler.window_counts = [0, 2]
        for _ in range(25):
            fill_bucket(sampler, 1)
            sampler.close_window()

        assert len(sampler.scores) == 20
        assert len(sampler.window_counts) == 27
        assert sampler.aggregate_score == pytest.approx(sum(sampler.scores.values()) / 20)

    def test_notifies_count_and_side(self, make_sampler, loop):
        sampler = make_sampler(side=Side.RIGHT)
        seen = []
        sampler.start(lambda count, side: seen.append((count, side)), loop=loop)
        fill_bucket(sampler, 7)
        sampler.close_window()

        assert seen == [(7, Side.RIGHT)]


class TestLifecycle:
    def test_start_opens_source_and_schedules_timer(self, make_sampler, loop):
        sampler = make_sampler()
        sampler.start(lambda count, side: None, loop=loop)

        assert sampler.state == Sampler.LISTENING
        assert sampler.source.open_calls == 1
        assert sampler._timer is not None and sampler._timer.active

    def test_events_from_source_reach_bucket(self, make_sampler, loop):
        sampler = make_sampler()
        sampler.start(lambda count, side: None, loop=loop)
        sampler.source.fire(4)

        assert sampler.close_window() == 3

    def test_stop_detaches_source_and_callback(self, make_sampler, loop):
        sampler = make_sampler()
        seen = []
        sampler.start(lambda count, side: seen.append(count), loop=loop)
        timer = sampler._timer
        sampler.stop()
        sampler.source.fire(5)
        sampler.close_window()

        assert sampler.state == Sampler.STOPPED
        assert sampler.source.close_calls == 1
        assert sampler.previous_arrival_time is None
        assert not timer.active
        assert seen == []

    def test_stop_twice_is_harmless(self, make_sampler, loop):
        sampler = make_sampler()
        sampler.start(lambda count, side: None, loop=loop)
        sampler.stop()
        sampler.stop()

        assert sampler.source.close_calls == 1

    def test_stop_without_start(self, make_sampler):
        sampler = make_sampler()
        sampler.stop()
        assert sampler.state == Sampler.STOPPED

    def test_cannot_restart_after_stop(self, make_sampler, loop):
        sampler = make_sampler()
        sampler.start(lambda count, side: None, loop=loop)
        sampler.stop()

        with pytest.raises(RuntimeError):
            sampler.start(lambda count, side: None, loop=loop)


class TestSourceWiring:
    def test_explicit_loop_drives_source_events(self, make_sampler):
        contender = make_sampler().contender
        sampler = Sampler(
            contender,
            open_source("synthetic://?rate=500&seed=1"),
            SamplerConfig(window_seconds=0.05),
        )
        counts = []
        event_loop = asyncio.new_event_loop()
        try:
            sampler.start(lambda count, side: counts.append(count), loop=event_loop)
            event_loop.run_until_complete(asyncio.sleep(0.2))

            assert sampler.source.is_open
            assert sampler.previous_arrival_time is not None
            assert counts and sum(counts) > 0
        finally:
            sampler.stop()
            event_loop.run_until_complete(asyncio.sleep(0))
            event_loop.close()

    def test_failed_open_is_not_reported_as_listening(self, make_sampler, loop):
        sampler = make_sampler()

        def refuse(on_event, loop=None):
            raise OSError("connection refused")

        sampler.source.open = refuse
        messages = []
        sink_id = logger.add(messages.append, format="{message}")
        try:
            sampler.start(lambda count, side: None, loop=loop)
        finally:
            logger.remove(sink_id)

        assert any("Could not open stream" in m for m in messages)
        assert not any("listening on" in m for m in messages)
        assert sampler._timer is not None and sampler._timer.active
