"""
Pytest configuration and fixtures.
Every test talks to an in-memory fake of the booking backend, never the network.
"""

import asyncio
import json
from datetime import datetime
from zoneinfo import ZoneInfo

import httpx
import pytest

from homestay_booking.api_client import ApiClient
from homestay_booking.config import Clock, Settings
from homestay_booking.drafts import MemoryDraftStore
from homestay_booking.services import build_services
from homestay_booking.session import AuthSession

JAKARTA = ZoneInfo("Asia/Jakarta")
BASE_URL = "http://backend.test/api"


class FakeBackend:
    """Routes ``(METHOD, path)`` to canned responses and records every request.

    A route value may be a dict/list (200 JSON), a ``(status, body)`` tuple, an
    exception instance to raise, or a callable taking the ``httpx.Request``.
    Paths are given without the ``/api`` prefix.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, response):
        self.routes[(method.upper(), path)] = response
        return self

    def calls(self, method=None, path=None):
        return [
            r for r in self.requests
            if (method is None or r.method == method.upper())
            and (path is None or self.path_of(r) == path)
        ]

    @staticmethod
    def path_of(request):
        path = request.url.path
        return path[len("/api"):] if path.startswith("/api") else path

    def __call__(self, request):
        self.requests.append(request)
        handler = self.routes.get((request.method, self.path_of(request)))
        if handler is None:
            return httpx.Response(404, json={"message": f"No route for {self.path_of(request)}"})
        if callable(handler):
            handler = handler(request)
        if isinstance(handler, Exception):
            raise handler
        if isinstance(handler, httpx.Response):
            return handler
        status, body = handler if isinstance(handler, tuple) else (200, handler)
        return httpx.Response(status, json=body)

    def body_of(self, request):
        return json.loads(request.content)


@pytest.fixture
def backend():
    """Fresh fake backend per test."""
    return FakeBackend()


@pytest.fixture
def settings(tmp_path):
    """Settings with timers shrunk so async tests finish quickly."""
    return Settings(
        api_base_url=BASE_URL,
        api_timeout=5.0,
        debounce_seconds=0.02,
        countdown_interval_seconds=0.01,
        same_day_poll_seconds=0.05,
        draft_store_path=tmp_path / "pending_booking.json",
    )


class FrozenClock(Clock):
    """Clock whose 'now' can be moved by tests."""

    def __init__(self, now):
        super().__init__(tz=JAKARTA, now_fn=lambda: self.current)
        self.current = now

    def set(self, now):
        self.current = now


@pytest.fixture
def clock():
    """10 March 2025, 13:00 in Jakarta."""
    return FrozenClock(datetime(2025, 3, 10, 13, 0, tzinfo=JAKARTA))


@pytest.fixture
def make_services(backend, settings, clock):
    """Build the service graph against the fake backend."""

    def factory(token=None, drafts=None):
        client = ApiClient(
            AuthSession(token=token),
            settings=settings,
            transport=httpx.MockTransport(backend),
        )
        return build_services(client, clock=clock, drafts=drafts or MemoryDraftStore())

    return factory


@pytest.fixture
def run():
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run
