"""
Tests for release and deploy notifications.
"""

from datetime import datetime

import httpx
import pytest

from activerabbit.api.endpoints import DEPLOYS_PATH, RELEASES_PATH
from activerabbit.core.client import ActiveRabbitClient
from activerabbit.errors import ClientError

from conftest import RecordingTransport


def _client(config, recorder, **overrides):
    if overrides:
        config = config.with_overrides(**overrides)
    return ActiveRabbitClient(
        config,
        transport=recorder.transport,
        sleep=lambda seconds: None,
        start_timer=False,
        register_atexit=False,
    )


class TestNotifyRelease:
    def test_posts_release_directly(self, client, recorder):
        result = client.notify_release("v1.4.0", environment="staging", metadata={"sha": "abc"})

        assert result == {"ok": True}
        assert recorder.requests[0].url.path == RELEASES_PATH
        assert recorder.bodies() == [{"version": "v1.4.0", "environment": "staging", "metadata": {"sha": "abc"}}]
        assert client.api.queue.pending == 0

    def test_defaults_to_configured_release_and_environment(self, client, recorder):
        client.notify_release()
        assert recorder.bodies() == [{"version": "abc123", "environment": "test", "metadata": {}}]

    def test_skipped_without_any_version(self, config, recorder):
        client = _client(config, recorder, release=None)
        try:
            assert client.notify_release() is None
            assert client.notify_release("   ") is None
        finally:
            client.shutdown()
        assert recorder.requests == []

    def test_conflict_counts_as_success(self, config):
        recorder = RecordingTransport([httpx.Response(409, json={"error": "already exists"})])
        client = _client(config, recorder)
        try:
            assert client.notify_release("v1.4.0") == {"duplicate": True}
        finally:
            client.shutdown()
        assert len(recorder.requests) == 1

    def test_other_client_errors_raise(self, config):
        recorder = RecordingTransport([httpx.Response(422, json={"error": "bad version"})])
        client = _client(config, recorder)
        try:
            with pytest.raises(ClientError) as exc_info:
                client.notify_release("v1.4.0")
        finally:
            client.shutdown()
        assert exc_info.value.status_code == 422


class TestNotifyDeploy:
    def test_payload(self, client, recorder):
        client.notify_deploy(
            project_slug="shop",
            status="success",
            user="deployer",
            version="v2",
            started_at=datetime(2024, 5, 1, 12, 0, 0),
            finished_at="2024-05-01T12:05:00Z",
        )

        assert recorder.requests[0].url.path == DEPLOYS_PATH
        assert recorder.bodies() == [
            {
                "revision": "abc123",
                "environment": "test",
                "project_slug": "shop",
                "version": "v2",
                "status": "success",
                "user": "deployer",
                "started_at": "2024-05-01T12:00:00.000+00:00",
                "finished_at": "2024-05-01T12:05:00Z",
            }
        ]

    def test_missing_times_are_sent_as_null(self, client, recorder):
        client.notify_deploy(project_slug="shop", status="started", user="ci", version="v2")
        body = recorder.bodies()[0]
        assert body["started_at"] is None
        assert body["finished_at"] is None

    def test_conflict_counts_as_success(self, config):
        recorder = RecordingTransport([httpx.Response(409)])
        client = _client(config, recorder)
        try:
            result = client.notify_deploy(project_slug="shop", status="success", user="ci", version="v2")
        finally:
            client.shutdown()
        assert result == {"duplicate": True}
