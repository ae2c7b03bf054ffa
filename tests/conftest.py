"""
Test fixtures and configuration for pytest
"""

import json

import httpx
import pytest

from activerabbit.core.client import ActiveRabbitClient
from activerabbit.core.config import Configuration
from activerabbit.helpers import global_state
from activerabbit.helpers.pii_scrubber import PIIScrubber


class RecordingTransport:
    """Collects every request and answers from a queue of canned responses."""

    def __init__(self, responses=None):
        self.requests = []
        self._responses = list(responses or [])

    def handler(self, request):
        self.requests.append(request)
        if self._responses:
            response = self._responses.pop(0)
        else:
            response = httpx.Response(200, json={"ok": True})
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)

    def bodies(self):
        return [json.loads(request.content) for request in self.requests if request.content]

    def events(self):
        """Flatten every batch request into its ``{type, data}`` items."""
        items = []
        for body in self.bodies():
            items.extend(body.get("events", []))
        return items


class FakeAPI:
    """Stands in for CollectorAPI in tracker tests."""

    def __init__(self):
        self.events = []
        self.exceptions = []
        self.performance = []

    def post_event(self, payload):
        self.events.append(payload)
        return True

    def post_exception(self, payload):
        self.exceptions.append(payload)
        return True

    def post_performance(self, payload):
        self.performance.append(payload)
        return True


@pytest.fixture(autouse=True)
def _reset_global_client():
    """Every test starts (and ends) without a process-wide client."""
    previous = global_state.reset_state()
    yield
    leftover = global_state.reset_state()
    for client in (previous, leftover):
        if client is not None:
            try:
                client.shutdown()
            except Exception:
                pass


@pytest.fixture
def config():
    return Configuration(
        api_key="test-token",
        api_url="https://collector.test",
        project_id="proj-1",
        environment="test",
        release="abc123",
        server_name="web-1",
        retry_delay=0,
        project_root=None,
    )


@pytest.fixture
def recorder():
    return RecordingTransport()


@pytest.fixture
def client(config, recorder):
    c = ActiveRabbitClient(
        config,
        transport=recorder.transport,
        sleep=lambda seconds: None,
        start_timer=False,
        register_atexit=False,
    )
    yield c
    try:
        c.shutdown()
    except Exception:
        pass


@pytest.fixture
def fake_api():
    return FakeAPI()


@pytest.fixture
def scrubber():
    return PIIScrubber()
