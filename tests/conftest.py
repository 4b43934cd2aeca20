"""
Root test configuration.

Gateway tests never touch the network: the client is built with a scripted
transport and a fake clock, so retries and rate-limit waits run instantly
and the delays they would have slept are recorded for assertions.

Fixtures
────────
clock         →  FakeClock; call it for "now", await ``clock.sleep`` to advance.
make_gateway  →  factory returning a Harness (gateway, transport, backoff sleeps).
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import pytest

from cra_assistant.config import GatewayConfig
from cra_assistant.gateway.client import GatewayClient
from cra_assistant.gateway.rate_limiter import SlidingWindowRateLimiter

API_KEY = "keyid.secretvalue"


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(seconds, 0.0)
        await asyncio.sleep(0)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeTransport:
    """Plays back scripted replies; the last one repeats once the script runs out.

    A reply is the message content to return, an exception to raise, or a
    callable that receives the request body and returns content.
    """

    def __init__(self, replies: list[Any]) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[dict[str, Any], str]] = []
        self.closed = False

    async def send(self, body: dict[str, Any], token: str) -> str:
        self.calls.append((body, token))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(body)
        return reply

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class Harness:
    gateway: GatewayClient
    transport: FakeTransport
    backoff: SleepRecorder
    clock: FakeClock


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_gateway(clock):
    """Build a GatewayClient wired to fakes: ``make_gateway(reply, ..., api_key=..., max_retries=...)``."""

    def factory(*replies: Any, **overrides: Any) -> Harness:
        config = GatewayConfig(**{"api_key": API_KEY, **overrides})
        transport = FakeTransport(list(replies) or ["{}"])
        limiter = SlidingWindowRateLimiter(
            config.max_requests_per_minute,
            clock=clock,
            sleep=clock.sleep,
        )
        backoff = SleepRecorder()
        gateway = GatewayClient(config, transport=transport, rate_limiter=limiter, sleep=backoff)
        return Harness(gateway=gateway, transport=transport, backoff=backoff, clock=clock)

    return factory
