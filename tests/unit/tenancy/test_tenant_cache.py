import time

import pytest

from src.shared.exceptions import ValidationError
from src.tenancy.infrastructure.cache import CacheEntry, TenantAwareCache


def test_ttl_expiry_real_time():
    c = TenantAwareCache()
    c.set("k", "v", "farm-a", ttl=0.1)
    assert c.get("k", "farm-a") == "v"
    time.sleep(0.15)
    assert c.get("k", "farm-a") is None


def test_ttl_expiry(clock):
    c = TenantAwareCache(default_ttl=10, clock=clock)
    c.set("k", "v", "farm-a")
    clock.advance(10)
    assert c.get("k", "farm-a") == "v"
    clock.advance(0.01)
    assert c.get("k", "farm-a") is None
    assert len(c) == 0


def test_tenants_do_not_share_keys(clock):
    c = TenantAwareCache(clock=clock)
    c.set("animals", ["a"], "farm-a")
    c.set("animals", ["b"], "farm-b")
    assert c.get("animals", "farm-a") == ["a"]
    assert c.get("animals", "farm-b") == ["b"]
    assert c.get("animals", "farm-c") is None


def test_tenant_id_with_separator_is_rejected(clock):
    c = TenantAwareCache(clock=clock)
    c.set("x:animals", "secret", "farm")
    c.set("animals", "spoof", "farm:x")
    assert c.get("animals", "farm:x") is None
    assert c.get("x:animals", "farm") == "secret"
    assert c.invalidate_tenant("farm:x") == 0


def test_invalidate_tenant(clock):
    c = TenantAwareCache(clock=clock)
    c.set("a", 1, "farm-a")
    c.set("b", 2, "farm-a")
    c.set("a", 3, "farm-b")
    assert c.invalidate_tenant("farm-a") == 2
    assert c.get("a", "farm-a") is None
    assert c.get("a", "farm-b") == 3


def test_invalidate_pattern_stays_within_tenant(clock):
    c = TenantAwareCache(clock=clock)
    c.set("animals:page=1", 1, "farm-a")
    c.set("animals:page=2", 2, "farm-a")
    c.set("tasks:page=1", 3, "farm-a")
    c.set("animals:page=1", 4, "farm-b")

    assert c.invalidate_pattern("animals:*", "farm-a") == 2
    assert c.get("tasks:page=1", "farm-a") == 3
    assert c.get("animals:page=1", "farm-b") == 4


def test_invalidate_pattern_matches_whole_key(clock):
    c = TenantAwareCache(clock=clock)
    c.set("animals", 1, "farm-a")
    c.set("my-animals", 2, "farm-a")
    assert c.invalidate_pattern("animals", "farm-a") == 1
    assert c.get("my-animals", "farm-a") == 2


def test_overlong_pattern_rejected(clock):
    c = TenantAwareCache(max_pattern_length=8, clock=clock)
    with pytest.raises(ValidationError):
        c.invalidate_pattern("*" * 9, "farm-a")


def test_size_stays_bounded(clock):
    c = TenantAwareCache(max_entries=10, clock=clock)
    for i in range(25):
        c.set(f"k{i}", i, f"farm-{i % 3}")
        clock.advance(1)
    assert len(c) <= 10


def test_least_accessed_entries_evicted_first(clock):
    c = TenantAwareCache(max_entries=3, clock=clock)
    c.set("hot", 1, "farm-a")
    clock.advance(1)
    c.set("warm", 2, "farm-a")
    clock.advance(1)
    c.set("cold", 3, "farm-b")
    for _ in range(3):
        c.get("hot", "farm-a")
    c.get("warm", "farm-a")
    clock.advance(1)
    c.set("new", 4, "farm-b")

    assert len(c) == 3
    assert c.get("cold", "farm-b") is None
    assert c.get("hot", "farm-a") == 1


def test_ties_evict_oldest(clock):
    c = TenantAwareCache(max_entries=2, clock=clock)
    c.set("first", 1, "farm-a")
    c.set("second", 2, "farm-a")
    c.set("third", 3, "farm-a")
    assert c.get("first", "farm-a") is None
    assert c.get("second", "farm-a") == 2
    assert c.get("third", "farm-a") == 3


def test_cleanup_drops_expired_before_evicting(clock):
    c = TenantAwareCache(max_entries=2, clock=clock)
    c.set("short", 1, "farm-a", ttl=1)
    c.set("long", 2, "farm-a", ttl=100)
    clock.advance(2)
    c.set("newer", 3, "farm-b", ttl=100)
    assert c.get("long", "farm-a") == 2
    assert c.get("newer", "farm-b") == 3


def test_stats_and_close(clock):
    c = TenantAwareCache(clock=clock)
    c.set("a", 1, "farm-a")
    c.set("b", 2, "farm-a")
    c.set("a", 3, "farm-b")
    stats = c.get_stats()
    assert stats.total_entries == 3
    assert stats.by_tenant == {"farm-a": 2, "farm-b": 1}
    assert c.close() == 3
    assert len(c) == 0


def test_eviction_skips_entries_rewritten_during_sweep(clock, monkeypatch):
    c = TenantAwareCache(max_entries=3, clock=clock)
    c.set("a", 1, "farm-a")
    c.set("b", 2, "farm-a")
    c.set("c", 3, "farm-a")
    c.max_entries = 2

    original_shard_for = c._entries.shard_for

    def rewrite_then_lookup(tenant_id):
        shard = original_shard_for(tenant_id)
        with shard.lock:
            shard.items["farm-a:a"] = CacheEntry("fresh", clock(), 300, "farm-a")
        return shard

    monkeypatch.setattr(c._entries, "shard_for", rewrite_then_lookup)
    assert c.cleanup() == 0
    monkeypatch.undo()

    assert len(c) == 3
    assert c.get("a", "farm-a") == "fresh"
