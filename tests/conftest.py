"""Shared pytest fixtures for the dapi_endpoints package tests.

Provides a controllable clock and fake HTTP objects so tests stay
deterministic and never touch the network.
"""

import json
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from dapi_endpoints.config import AppConfig
from dapi_endpoints.networks import Network


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Application config fixture pointing logs at a temporary directory."""
    return AppConfig(
        network=Network.TESTNET,
        log_directory=tmp_path,
        log_level="INFO",
    )


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class DummyResponse:
    def __init__(self, status_code: int, body: Union[bytes, str, Dict[str, Any], None] = b"") -> None:
        self.status_code = status_code
        if isinstance(body, dict):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.content = body or b""
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Minimal stand-in for ``requests.Session``.

    ``routes`` maps URL -> response, exception instance, or callable(url).
    Unknown URLs get ``default``. Tracks call count and peak in-flight requests.
    """

    def __init__(
        self,
        routes: Optional[Dict[str, Any]] = None,
        *,
        default: Any = None,
        delay: float = 0.0,
    ) -> None:
        self.routes = dict(routes or {})
        self.default = default if default is not None else DummyResponse(200)
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.closed = False
        self._lock = threading.Lock()

    def get(self, url: str, **kwargs: Any) -> DummyResponse:
        with self._lock:
            self.calls.append({"url": url, **kwargs})
            self.in_flight += 1
            self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            outcome = self.routes.get(url, self.default)
            if isinstance(outcome, BaseException):
                raise outcome
            if callable(outcome):
                return outcome(url)
            return outcome
        finally:
            with self._lock:
                self.in_flight -= 1

    def urls(self) -> List[str]:
        return [call["url"] for call in self.calls]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    """Factory for ``FakeSession`` instances."""
    return FakeSession


@pytest.fixture
def make_response() -> Callable[..., DummyResponse]:
    """Factory for ``DummyResponse`` instances."""
    return DummyResponse
