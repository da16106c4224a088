"""Shared fixtures: a fixed clock and in-memory two-factor services."""

from __future__ import annotations

import pytest

from authlink.auth import totp
from authlink.auth.enrollment import TwoFactorManager
from authlink.auth.login import LoginCoordinator
from authlink.auth.primary import StaticPrimaryStore
from authlink.services import Services
from authlink.store import MemoryCredentialStore

RFC_SECRET = b"12345678901234567890"
PASSWORD = "authen@20"


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[dict] = []

    def __call__(self, category, severity, event_type, message, *, account_id=None, context=None):
        self.events.append({
            "category": category,
            "severity": severity,
            "event_type": event_type,
            "message": message,
            "account_id": account_id,
            "context": context or {},
        })
        return len(self.events)

    @property
    def types(self) -> list[str]:
        return [e["event_type"] for e in self.events]


def wrong_code(secret: bytes, now: float, window: int = 1) -> str:
    """A well-formed code that matches no step in the window around ``now``."""
    step = totp.time_step(now)
    valid = {totp.compute_code(secret, s) for s in range(step - window, step + window + 1)}
    for n in range(1_000_000):
        candidate = f"{n:06d}"
        if candidate not in valid:
            return candidate
    raise AssertionError("unreachable")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def store() -> MemoryCredentialStore:
    return MemoryCredentialStore()


@pytest.fixture
def manager(store, clock, sink) -> TwoFactorManager:
    return TwoFactorManager(store, issuer="MikroTik Auth Link", clock=clock, on_event=sink)


@pytest.fixture
def primary() -> StaticPrimaryStore:
    return StaticPrimaryStore({"acct1": PASSWORD, "acct2": PASSWORD})


@pytest.fixture
def coordinator(primary, manager, clock, sink) -> LoginCoordinator:
    return LoginCoordinator(primary, manager, clock=clock, on_event=sink)


@pytest.fixture
def services(store, primary, manager, coordinator) -> Services:
    return Services(store=store, primary=primary, two_factor=manager, login=coordinator)
