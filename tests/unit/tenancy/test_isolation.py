import pytest

from src.shared.exceptions import InvalidTenantContextError
from src.tenancy.domain.isolation import (
    filter_by_tenant,
    generate_tenant_cache_key,
    tag_tenant_validated,
    validate_batch_tenant_access,
    validate_data_ownership,
    validate_tenant_access,
    validate_tenant_context,
    validate_tenant_limits,
    with_tenant_context,
)
from src.tenancy.domain.value_objects import TenantContext

MIXED = [
    {"id": "1", "tenant_id": "farm-a"},
    {"id": "2", "tenant_id": "farm-b"},
    {"id": "3", "tenant_id": "farm-a"},
    {"id": "4"},
    {"id": "5", "tenant_id": ""},
]


def test_filter_keeps_only_own_tenant_in_order(ctx_a):
    assert [r["id"] for r in filter_by_tenant(MIXED, ctx_a)] == ["1", "3"]


def test_filter_with_invalid_context_returns_nothing():
    no_subscription = TenantContext("farm-a", "user-a")
    assert filter_by_tenant(MIXED, no_subscription) == []
    assert filter_by_tenant(MIXED, None) == []


def test_filter_accepts_generators(ctx_b):
    assert [r["id"] for r in filter_by_tenant((r for r in MIXED), ctx_b)] == ["2"]


def test_validate_tenant_access():
    ctx = TenantContext.for_tier("farm-a", "u", "beta")
    assert validate_tenant_access("farm-a", ctx) is True
    assert validate_tenant_access("farm-b", ctx) is False
    assert validate_tenant_access(None, ctx) is False
    assert validate_tenant_access("", ctx) is False
    assert validate_tenant_access("farm-a", None) is False


def test_validate_tenant_context():
    assert validate_tenant_context(TenantContext.for_tier("farm-a", "u", "beta"))
    assert not validate_tenant_context(TenantContext.for_tier("", "u", "beta"))
    assert not validate_tenant_context(TenantContext.for_tier("farm-a", "", "beta"))
    assert not validate_tenant_context(TenantContext("farm-a", "u"))
    assert not validate_tenant_context(None)


def test_stamped_record_passes_filter(ctx_a):
    stamped = with_tenant_context({"name": "Daisy", "tenant_id": "farm-b"}, ctx_a)
    assert stamped["tenant_id"] == "farm-a"
    assert stamped["created_by"] == "user-a"
    assert stamped["updated_by"] == "user-a"
    assert stamped["tenant_validated"] is True
    assert stamped["name"] == "Daisy"
    assert filter_by_tenant([stamped], ctx_a) == [stamped]


def test_stamping_does_not_mutate_input(ctx_a):
    record = {"name": "Daisy"}
    with_tenant_context(record, ctx_a)
    assert record == {"name": "Daisy"}


def test_stamping_with_invalid_context_raises():
    with pytest.raises(InvalidTenantContextError) as exc:
        with_tenant_context({"name": "Daisy"}, TenantContext("farm-a", "u"))
    assert exc.value.message == "Invalid tenant context provided"
    with pytest.raises(InvalidTenantContextError):
        with_tenant_context({"name": "Daisy"}, None)


def test_batch_partition(ctx_a):
    part = validate_batch_tenant_access(MIXED, ctx_a)
    assert [r["id"] for r in part.valid] == ["1", "3"]
    assert [r["id"] for r in part.invalid] == ["2", "4", "5"]


def test_tag_tenant_validated(ctx_a):
    tagged = tag_tenant_validated(MIXED, ctx_a)
    assert [r["id"] for r in tagged] == ["1", "3"]
    assert all(r["tenant_validated"] for r in tagged)
    assert "tenant_validated" not in MIXED[0]


def test_animal_limit_reached_is_denied(ctx_a):
    decision = validate_tenant_limits(ctx_a, {"animals": 50})
    assert decision.allowed is False
    assert decision.reason == "Animal limit exceeded. Current: 50, Limit: 50"


def test_limits_below_quota_allowed(ctx_a):
    assert validate_tenant_limits(ctx_a, {"animals": 49, "transactions": 99, "users": 2}).allowed


def test_first_exceeded_limit_wins(ctx_a):
    decision = validate_tenant_limits(ctx_a, {"transactions": 150, "users": 3})
    assert decision.reason == "Transaction limit exceeded. Current: 150, Limit: 100"
    decision = validate_tenant_limits(ctx_a, {"users": 3})
    assert decision.reason == "User limit exceeded. Current: 3, Limit: 3"


def test_limits_without_subscription_denied():
    decision = validate_tenant_limits(TenantContext("farm-a", "u"), {"animals": 1})
    assert decision.allowed is False


def test_ownership(ctx_a, admin_a):
    own = {"tenant_id": "farm-a", "created_by": "user-a"}
    colleague = {"tenant_id": "farm-a", "created_by": "someone-else"}
    unowned = {"tenant_id": "farm-a"}
    foreign = {"tenant_id": "farm-b", "created_by": "user-a"}

    assert validate_data_ownership(own, ctx_a).allowed
    assert validate_data_ownership(unowned, ctx_a).allowed
    denied = validate_data_ownership(colleague, ctx_a)
    assert denied.allowed is False
    assert denied.reason == "Access denied: Can only access own data"

    assert validate_data_ownership(colleague, admin_a).allowed
    cross = validate_data_ownership(foreign, admin_a)
    assert cross.allowed is False
    assert cross.reason == "Access denied: Data belongs to different tenant"


def test_cache_key_is_order_independent():
    k1 = generate_tenant_cache_key("animals", "farm-a", {"b": 2, "a": 1})
    k2 = generate_tenant_cache_key("animals", "farm-a", {"a": 1, "b": 2})
    assert k1 == k2 == "farm-a:animals:a=1&b=2"
    assert generate_tenant_cache_key("animals", "farm-a") == "farm-a:animals"
    assert generate_tenant_cache_key("animals", "farm-b", {"a": 1}) != k1
