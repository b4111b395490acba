"""
Shared fixtures: an in-memory traffic source and fast crawler settings.
"""
from __future__ import annotations

import json
from typing import Any

import pytest

from shared.config import Settings

from capture.correlator import ResponseCorrelator
from capture.traffic import ExchangeHandler, NetworkExchange

API_ROOT = "www.sofascore.com/api/v1"


def api_url(path: str) -> str:
    return f"https://{API_ROOT}{path}"


class FakeTraffic:
    """Traffic source driven by the test: ``emit`` delivers a response."""

    def __init__(self) -> None:
        self.handlers: list[ExchangeHandler] = []

    def subscribe(self, handler: ExchangeHandler) -> None:
        self.handlers.append(handler)

    def unsubscribe(self, handler: ExchangeHandler) -> None:
        self.handlers.remove(handler)

    def emit(self, url: str, body: Any = None, status: int = 200) -> None:
        async def read_body() -> bytes:
            if isinstance(body, Exception):
                raise body
            if isinstance(body, bytes):
                return body
            return json.dumps(body).encode()

        exchange = NetworkExchange(url=url, status=status, read_body=read_body)
        for handler in list(self.handlers):
            handler(exchange)


@pytest.fixture
def traffic() -> FakeTraffic:
    return FakeTraffic()


@pytest.fixture
def correlator(traffic: FakeTraffic) -> ResponseCorrelator:
    return ResponseCorrelator(traffic, api_root=API_ROOT, default_timeout_s=1.0)


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        max_retries=1,
        retry_delay_s=0,
        page_delay_s=0,
        tab_delay_s=0,
        player_delay_s=0,
        capture_timeout_s=0.2,
        profile_capture_timeout_s=0.2,
        discovery_capture_timeout_s=0.2,
    )
