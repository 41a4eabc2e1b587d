from datetime import datetime, timedelta, timezone

import pytest

from src.tenancy.domain.value_objects import TenantContext


class FakeClock:
    """Manually advanced monotonic clock for TTL/window tests."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNow:
    """Manually advanced aware-datetime clock for audit/usage tests."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_now():
    return FakeNow()


@pytest.fixture
def ctx_a():
    return TenantContext.for_tier("farm-a", "user-a", "beta", roles=["worker"])


@pytest.fixture
def ctx_b():
    return TenantContext.for_tier("farm-b", "user-b", "professional", roles=["worker"])


@pytest.fixture
def admin_a():
    return TenantContext.for_tier("farm-a", "admin-a", "beta", roles=["admin"])
