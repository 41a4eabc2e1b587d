from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from src.shared.exceptions import ValidationError
from src.tenancy.domain.subscriptions import (
    DEFAULT_RATE_LIMIT,
    calculate_usage_percentage,
    get_available_features,
    get_rate_limit,
    get_subscription_limits,
    get_trial_days_remaining,
    is_trial_expired,
    subscription_for,
    validate_feature_access,
)
from src.tenancy.domain.value_objects import SubscriptionLimits, SubscriptionTier, TenantContext


def test_tier_table():
    beta = get_subscription_limits("beta")
    assert (beta["max_animals"], beta["max_transactions"], beta["max_users"]) == (50, 100, 3)
    assert beta["trial_days"] == 30
    pro = get_subscription_limits(SubscriptionTier.PROFESSIONAL)
    assert (pro["max_animals"], pro["max_transactions"], pro["max_users"]) == (500, 1000, 10)
    ent = get_subscription_limits("Enterprise")
    assert (ent["max_animals"], ent["max_transactions"], ent["max_users"]) == (5000, 10000, 50)


def test_limits_are_copies():
    get_subscription_limits("beta")["features"].append("api_access")
    assert not validate_feature_access("beta", "api_access")


def test_unknown_tier_rejected():
    with pytest.raises(ValidationError):
        get_subscription_limits("platinum")
    with pytest.raises(ValidationError):
        TenantContext.for_tier("farm-a", "u", "platinum")


def test_features():
    assert validate_feature_access("enterprise", "rfid_integration")
    assert not validate_feature_access("professional", "rfid_integration")
    assert "breeding_module" in get_available_features("professional")
    assert "basic_animals" in get_available_features("beta")


def test_usage_percentage():
    pct = calculate_usage_percentage({"animals": 25, "transactions": 150}, "beta")
    assert pct["animals"] == 50.0
    assert pct["transactions"] == 150.0
    assert pct["users"] == 0.0


def test_rate_limits():
    assert get_rate_limit("beta", "write") == 20
    assert get_rate_limit("professional", "delete") == 20
    assert get_rate_limit("enterprise", "read") == 10000
    assert get_rate_limit("beta", "export") == DEFAULT_RATE_LIMIT == 10
    assert get_rate_limit("platinum", "read") == DEFAULT_RATE_LIMIT


def test_trial_helpers():
    now = datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert is_trial_expired(now - timedelta(seconds=1), now=now)
    assert not is_trial_expired(now + timedelta(days=1), now=now)
    assert get_trial_days_remaining(now + timedelta(days=2, hours=1), now=now) == 3
    assert get_trial_days_remaining(now - timedelta(days=5), now=now) == 0


def test_subscription_for_builds_limits():
    sub = subscription_for("beta")
    assert sub.tier is SubscriptionTier.BETA
    assert sub.limits == SubscriptionLimits(50, 100, 3)


def test_limits_must_be_positive():
    with pytest.raises(ValidationError):
        SubscriptionLimits(0, 100, 3)
    with pytest.raises(ValidationError):
        SubscriptionLimits(50, True, 3)


def test_context_is_immutable_and_normalizes_collections():
    ctx = TenantContext("farm-a", "u", roles=["admin", "admin"], permissions={"read"})
    assert ctx.roles == frozenset({"admin"})
    assert ctx.permissions == frozenset({"read"})
    with pytest.raises(FrozenInstanceError):
        ctx.tenant_id = "farm-b"
    assert ctx.tier is None and ctx.limits is None
    assert TenantContext.for_tier("farm-a", "u", "beta").to_log_context() == {
        "tenant_id": "farm-a",
        "user_id": "u",
        "tier": "beta",
    }
