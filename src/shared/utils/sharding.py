# /src/shared/utils/sharding.py
"""
Lock striping keyed by tenant id.

Process-wide maps (cache, usage, audit, rate-limit counters) are split into
shards so that unrelated tenants rarely contend on the same lock.
"""

from __future__ import annotations

import threading
import zlib
from typing import Dict, Generic, Iterator, List, Tuple, TypeVar

V = TypeVar("V")


def shard_index(tenant_id: str, shard_count: int) -> int:
    # crc32 is stable across processes, unlike hash() with PYTHONHASHSEED
    return zlib.crc32(tenant_id.encode("utf-8")) % shard_count


class Shard(Generic[V]):
    __slots__ = ("lock", "items")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.items: Dict[str, V] = {}


class ShardedMap(Generic[V]):
    """A dict split into independently locked shards; callers lock via `shard_for`."""

    def __init__(self, shard_count: int = 16) -> None:
        if shard_count <= 0:
            raise ValueError("shard_count must be > 0")
        self._shards: List[Shard[V]] = [Shard() for _ in range(shard_count)]

    @property
    def shard_count(self) -> int:
        return len(self._shards)

    def shard_for(self, tenant_id: str) -> Shard[V]:
        return self._shards[shard_index(tenant_id, len(self._shards))]

    def shards(self) -> List[Shard[V]]:
        return list(self._shards)

    def __len__(self) -> int:
        return sum(len(s.items) for s in self._shards)

    def snapshot(self) -> Iterator[Tuple[str, V]]:
        """Yield (key, value) pairs, each shard copied under its own lock."""
        for shard in self._shards:
            with shard.lock:
                pairs = list(shard.items.items())
            yield from pairs

    def clear(self) -> int:
        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += len(shard.items)
                shard.items.clear()
        return removed
