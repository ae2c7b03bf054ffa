"""
Tests for short-window exception dedupe.
"""

import threading

from activerabbit.context import RequestContext
from activerabbit.helpers.dedupe import Deduplicator, extract_correlation_id


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def _raise_value_error(message="boom"):
    try:
        raise ValueError(message)
    except ValueError as e:
        return e


class TestCorrelationId:
    def test_request_context_wins(self):
        ctx = RequestContext(request_id="req-1")
        assert extract_correlation_id({"request_id": "other"}, ctx) == "req-1"

    def test_nested_request_mapping(self):
        assert extract_correlation_id({"request": {"requestId": "abc"}}) == "abc"

    def test_top_level_keys(self):
        assert extract_correlation_id({"trace_id": "t-9"}) == "t-9"

    def test_missing(self):
        assert extract_correlation_id({"user": "u"}) is None
        assert extract_correlation_id(None) is None


class TestDeduplicator:
    def test_repeat_within_window_is_suppressed(self):
        clock = FakeClock()
        dedupe = Deduplicator(window=60, clock=clock)
        error = _raise_value_error()

        assert dedupe.seen_recently(error) is False
        clock.advance(10)
        assert dedupe.seen_recently(error) is True

    def test_repeat_after_window_is_admitted(self):
        clock = FakeClock()
        dedupe = Deduplicator(window=60, clock=clock)
        error = _raise_value_error()

        assert dedupe.seen_recently(error) is False
        clock.advance(61)
        assert dedupe.seen_recently(error) is False

    def test_suppressed_call_does_not_refresh_timestamp(self):
        clock = FakeClock()
        dedupe = Deduplicator(window=60, clock=clock)
        error = _raise_value_error()

        assert dedupe.seen_recently(error) is False
        clock.advance(50)
        assert dedupe.seen_recently(error) is True
        clock.advance(15)
        assert dedupe.seen_recently(error) is False

    def test_different_correlation_ids_are_distinct(self):
        dedupe = Deduplicator(window=60, clock=FakeClock())
        error = _raise_value_error()

        assert dedupe.seen_recently(error, {"request_id": "a"}) is False
        assert dedupe.seen_recently(error, {"request_id": "b"}) is False
        assert dedupe.seen_recently(error, {"request_id": "a"}) is True

    def test_different_types_are_distinct(self):
        dedupe = Deduplicator(window=60, clock=FakeClock())
        try:
            raise KeyError("k")
        except KeyError as e:
            key_error = e

        assert dedupe.seen_recently(_raise_value_error()) is False
        assert dedupe.seen_recently(key_error) is False

    def test_zero_window_disables_and_clears(self):
        clock = FakeClock()
        dedupe = Deduplicator(window=60, clock=clock)
        error = _raise_value_error()
        dedupe.seen_recently(error)
        assert len(dedupe) == 1

        assert dedupe.seen_recently(error, window=0) is False
        assert dedupe.seen_recently(error, window=0) is False
        assert len(dedupe) == 0

    def test_stale_entries_are_pruned(self):
        clock = FakeClock()
        dedupe = Deduplicator(window=60, clock=clock)
        dedupe.seen_recently(_raise_value_error(), {"request_id": "a"})
        dedupe.seen_recently(_raise_value_error(), {"request_id": "b"})
        assert len(dedupe) == 2

        clock.advance(60)
        dedupe.seen_recently(_raise_value_error(), {"request_id": "c"})
        assert len(dedupe) == 1

    def test_key_shape(self):
        dedupe = Deduplicator()
        key = dedupe.build_key(_raise_value_error(), {"request_id": "r-1"})
        type_name, top_frame, correlation_id = key.split("|")
        assert type_name == "ValueError"
        assert "_raise_value_error" in top_frame
        assert correlation_id == "r-1"

    def test_concurrent_checks_admit_exactly_once(self):
        dedupe = Deduplicator(window=60)
        error = _raise_value_error()
        results = []
        barrier = threading.Barrier(8)

        def check():
            barrier.wait()
            results.append(dedupe.seen_recently(error, {"request_id": "shared"}))

        threads = [threading.Thread(target=check) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(False) == 1
        assert results.count(True) == 7
