"""
Tests for custom events and performance measurements.
"""

from datetime import datetime, timezone

import pytest

from activerabbit.context import JobContext, RequestContext
from activerabbit.helpers.pii_scrubber import FILTERED
from activerabbit.trackers import EventProcessor, PerformanceMonitor


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestEventProcessor:
    def test_event_payload(self, config, fake_api, scrubber):
        processor = EventProcessor(config, fake_api, scrubber)
        moment = datetime(2024, 5, 1, 12, 30, 0, 123456, tzinfo=timezone.utc)
        payload = processor.track_event("signup", {"plan": "pro"}, user_id=7, timestamp=moment)

        assert fake_api.events == [payload]
        assert payload["name"] == "signup"
        assert payload["properties"] == {"plan": "pro"}
        assert payload["user_id"] == "7"
        assert payload["timestamp"] == "2024-05-01T12:30:00.123+00:00"
        assert payload["environment"] == "test"
        assert "runtime" in payload["context"]

    def test_properties_scrubbed(self, config, fake_api, scrubber):
        processor = EventProcessor(config, fake_api, scrubber)
        payload = processor.track_event("login", {"email": "a@b.io", "source": "web"})
        assert payload["properties"] == {"email": FILTERED, "source": "web"}

    def test_request_and_job_context(self, config, fake_api, scrubber):
        processor = EventProcessor(config, fake_api, scrubber)
        payload = processor.track_event(
            "export",
            request_context=RequestContext(method="GET", path="/export"),
            job_context=JobContext(job_class="ExportJob"),
        )
        assert payload["context"]["request"] == {"method": "GET", "path": "/export"}
        assert payload["context"]["job"] == {"job_class": "ExportJob"}

    def test_before_send_veto(self, config, fake_api, scrubber):
        processor = EventProcessor(config.with_overrides(before_send_event=lambda payload: {}), fake_api, scrubber)
        assert processor.track_event("signup") is None
        assert fake_api.events == []

    def test_caller_properties_not_mutated(self, config, fake_api, scrubber):
        properties = {"password": "hunter2", "nested": {"a": 1}}
        payload = EventProcessor(config, fake_api, scrubber).track_event("x", properties)
        payload["properties"]["nested"]["a"] = 2
        assert properties == {"password": "hunter2", "nested": {"a": 1}}


class TestPerformanceMonitor:
    def test_track_performance(self, config, fake_api, scrubber):
        monitor = PerformanceMonitor(config, fake_api, scrubber)
        payload = monitor.track_performance("db.query", 12.5, {"table": "users"})

        assert fake_api.performance == [payload]
        assert payload["name"] == "db.query"
        assert payload["duration_ms"] == 12.5
        assert payload["metadata"] == {"table": "users"}
        assert "process" in payload["performance_context"]

    def test_disabled_monitor_reports_nothing(self, config, fake_api, scrubber):
        monitor = PerformanceMonitor(config.with_overrides(enable_performance_monitoring=False), fake_api, scrubber)
        assert monitor.track_performance("x", 1.0) is None
        assert monitor.start_transaction("x") is None
        with monitor.measure("x"):
            pass
        assert fake_api.performance == []

    def test_transaction_lifecycle(self, config, fake_api, scrubber):
        clock = FakeClock()
        monitor = PerformanceMonitor(config, fake_api, scrubber, clock=clock)

        transaction_id = monitor.start_transaction("checkout", {"cart": 3})
        assert monitor.active_transactions == 1
        clock.now += 0.25
        payload = monitor.finish_transaction(transaction_id, {"status": "paid"})

        assert monitor.active_transactions == 0
        assert payload["name"] == "checkout"
        assert payload["duration_ms"] == 250.0
        assert payload["metadata"] == {"cart": 3, "status": "paid"}

    def test_unknown_transaction_is_ignored(self, config, fake_api, scrubber):
        monitor = PerformanceMonitor(config, fake_api, scrubber)
        assert monitor.finish_transaction("does-not-exist") is None
        assert monitor.finish_transaction(None) is None
        assert fake_api.performance == []

    def test_transaction_finished_once(self, config, fake_api, scrubber):
        monitor = PerformanceMonitor(config, fake_api, scrubber)
        transaction_id = monitor.start_transaction("job")
        monitor.finish_transaction(transaction_id)
        assert monitor.finish_transaction(transaction_id) is None
        assert len(fake_api.performance) == 1

    def test_measure_success(self, config, fake_api, scrubber):
        clock = FakeClock()
        monitor = PerformanceMonitor(config, fake_api, scrubber, clock=clock)

        with monitor.measure("render", {"template": "home"}) as extra:
            clock.now += 0.01
            extra["rows"] = 20

        payload = fake_api.performance[0]
        assert payload["duration_ms"] == 10.0
        assert payload["metadata"] == {"template": "home", "rows": 20, "success": True}

    def test_measure_reports_failure_and_reraises(self, config, fake_api, scrubber):
        monitor = PerformanceMonitor(config, fake_api, scrubber)

        with pytest.raises(ZeroDivisionError):
            with monitor.measure("compute"):
                1 / 0

        payload = fake_api.performance[0]
        assert payload["metadata"]["success"] is False
        assert payload["metadata"]["error_type"] == "ZeroDivisionError"
