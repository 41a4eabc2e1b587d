"""
Tenant-aware in-memory cache for expensive query results.

- Every physical key is `tenant_id:key`, so identical keys from two tenants
  never collide and a tenant can only ever read its own namespace.
- Entries expire lazily on read and eagerly during a sweep.
- The total number of entries is capped; when a `set` pushes the cache over
  the cap, a sweep runs before `set` returns. The sweep drops expired
  entries first, then the least-accessed ones (ties: oldest first). This is a
  frequency-based approximation of LRU, not a recency order.

WARNING: This is single-instance only and data is lost on restart.
"""
from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.shared.logging import get_logger, time_block
from src.shared.utils.glob import DEFAULT_MAX_PATTERN_LENGTH, glob_match, validate_pattern
from src.shared.utils.sharding import ShardedMap

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_ENTRIES = 1000


@dataclass
class CacheEntry:
    data: Any
    created_at: float
    ttl: float
    tenant_id: str
    access_count: int = 0
    seq: int = 0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    by_tenant: Dict[str, int] = field(default_factory=dict)


def _composite_key(tenant_id: str, key: str) -> str:
    return f"{tenant_id}:{key}"


def _valid_namespace(tenant_id: Optional[str]) -> bool:
    # a ":" inside a tenant id would let one namespace prefix another
    return bool(tenant_id) and ":" not in tenant_id


class TenantAwareCache:
    """Bounded, per-tenant-namespaced TTL cache."""

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_pattern_length: int = DEFAULT_MAX_PATTERN_LENGTH,
        shards: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.max_entries = max_entries
        self.default_ttl = default_ttl
        self.max_pattern_length = max_pattern_length
        self._clock = clock
        self._entries: ShardedMap[CacheEntry] = ShardedMap(shards)
        self._sweep_lock = threading.Lock()
        self._seq = itertools.count()

    # ==================== READ / WRITE ====================

    def set(self, key: str, data: Any, tenant_id: str, ttl: Optional[float] = None) -> None:
        if not _valid_namespace(tenant_id):
            logger.warning("Cache set with unusable tenant_id ignored", key=key)
            return
        entry = CacheEntry(
            data=data,
            created_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
            tenant_id=tenant_id,
            seq=next(self._seq),
        )
        shard = self._entries.shard_for(tenant_id)
        with shard.lock:
            shard.items[_composite_key(tenant_id, key)] = entry

        if len(self._entries) > self.max_entries:
            self.cleanup()

    def get(self, key: str, tenant_id: str) -> Any:
        if not _valid_namespace(tenant_id):
            return None
        composite = _composite_key(tenant_id, key)
        shard = self._entries.shard_for(tenant_id)
        with shard.lock:
            entry = shard.items.get(composite)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del shard.items[composite]
                return None
            entry.access_count += 1
            return entry.data

    # ==================== INVALIDATION ====================

    def invalidate_tenant(self, tenant_id: str) -> int:
        if not _valid_namespace(tenant_id):
            return 0
        prefix = _composite_key(tenant_id, "")
        shard = self._entries.shard_for(tenant_id)
        with shard.lock:
            doomed = [k for k in shard.items if k.startswith(prefix)]
            for k in doomed:
                del shard.items[k]
        if doomed:
            logger.debug("Cache invalidated for tenant", tenant_id=tenant_id, removed=len(doomed))
        return len(doomed)

    def invalidate_pattern(self, pattern: str, tenant_id: str) -> int:
        """Remove this tenant's entries whose un-prefixed key matches the glob `pattern`."""
        validate_pattern(pattern, max_length=self.max_pattern_length)
        if not _valid_namespace(tenant_id):
            return 0
        prefix = _composite_key(tenant_id, "")
        shard = self._entries.shard_for(tenant_id)
        with shard.lock:
            doomed = [
                k for k in shard.items
                if k.startswith(prefix) and glob_match(pattern, k[len(prefix):])
            ]
            for k in doomed:
                del shard.items[k]
        return len(doomed)

    # ==================== EVICTION ====================

    def cleanup(self) -> int:
        """Sweep expired entries everywhere, then evict least-accessed until at the cap."""
        with self._sweep_lock, time_block("tenancy.cache.cleanup", logger=logger):
            now = self._clock()
            removed = 0
            survivors: List[Tuple[int, float, int, str, str, CacheEntry]] = []

            for shard in self._entries.shards():
                with shard.lock:
                    for k in [k for k, e in shard.items.items() if e.is_expired(now)]:
                        del shard.items[k]
                        removed += 1
                    survivors.extend(
                        (e.access_count, e.created_at, e.seq, e.tenant_id, k, e) for k, e in shard.items.items()
                    )

            overflow = len(survivors) - self.max_entries
            if overflow > 0:
                survivors.sort(key=lambda s: s[:3])
                evicted = 0
                for _, _, _, tenant_id, k, entry in survivors[:overflow]:
                    shard = self._entries.shard_for(tenant_id)
                    with shard.lock:
                        # skip keys rewritten since the snapshot was taken
                        if shard.items.get(k) is entry:
                            del shard.items[k]
                            evicted += 1
                removed += evicted
                logger.info(
                    "Cache evicted least-accessed entries",
                    evicted=evicted,
                    skipped=overflow - evicted,
                    max_entries=self.max_entries,
                )

            return removed

    # ==================== DIAGNOSTICS ====================

    def get_stats(self) -> CacheStats:
        by_tenant: Dict[str, int] = {}
        total = 0
        for _, entry in self._entries.snapshot():
            by_tenant[entry.tenant_id] = by_tenant.get(entry.tenant_id, 0) + 1
            total += 1
        return CacheStats(total_entries=total, by_tenant=by_tenant)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> int:
        return self._entries.clear()

    def close(self) -> int:
        removed = self.clear()
        logger.info("Tenant cache drained", removed=removed)
        return removed
