"""
Fixed-window rate limiting per (tenant, operation category).

Per-process approximation: every instance counts on its own, so N replicas
allow up to N times the tier ceiling. A shared store is needed for anything
stricter.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from src.shared.logging import get_logger
from src.shared.utils.sharding import Shard, ShardedMap, shard_index
from src.tenancy.domain.subscriptions import get_rate_limit
from src.tenancy.domain.value_objects import RateLimitDecision, TenantContext

logger = get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0
# check() sweeps a shard once per window, or sooner when it holds this many
# windows (the bound doubles with the live ones left after a sweep)
SWEEP_THRESHOLD = 256


@dataclass
class _Window:
    started_at: float
    count: int = 0


class FixedWindowRateLimiter:
    def __init__(
        self,
        *,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        shards: int = 16,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: ShardedMap[_Window] = ShardedMap(shards)
        self._sweep_at: List[int] = [SWEEP_THRESHOLD] * shards
        self._last_sweep: List[float] = [clock()] * shards

    def _is_elapsed(self, window: _Window, now: float) -> bool:
        return now - window.started_at >= self.window_seconds

    def _sweep_shard(self, shard: Shard[_Window], now: float) -> int:
        # caller holds shard.lock
        elapsed = [k for k, w in shard.items.items() if self._is_elapsed(w, now)]
        for key in elapsed:
            del shard.items[key]
        return len(elapsed)

    def _reset_time(self, window: _Window) -> datetime:
        return datetime.fromtimestamp(window.started_at, tz=timezone.utc) + timedelta(seconds=self.window_seconds)

    def check(self, context: TenantContext, category: str) -> RateLimitDecision:
        """Count one request against `tenant_id:category` and say whether it fits the window."""
        tier = context.tier if context is not None else None
        if context is None or not context.tenant_id or tier is None:
            return RateLimitDecision(allowed=False)

        limit = get_rate_limit(tier, category)
        key = f"{context.tenant_id}:{category}"
        now = self._clock()

        idx = shard_index(context.tenant_id, self._windows.shard_count)
        shard = self._windows.shard_for(context.tenant_id)
        with shard.lock:
            window = shard.items.get(key)
            if window is None or self._is_elapsed(window, now):
                if window is None and (
                    len(shard.items) >= self._sweep_at[idx]
                    or now - self._last_sweep[idx] >= self.window_seconds
                ):
                    self._sweep_shard(shard, now)
                    self._last_sweep[idx] = now
                    self._sweep_at[idx] = max(SWEEP_THRESHOLD, 2 * len(shard.items))
                window = shard.items[key] = _Window(started_at=now)

            if window.count >= limit:
                decision = RateLimitDecision(
                    allowed=False,
                    reset_time=self._reset_time(window),
                    limit=limit,
                    remaining=0,
                )
            else:
                window.count += 1
                decision = RateLimitDecision(
                    allowed=True,
                    reset_time=self._reset_time(window),
                    limit=limit,
                    remaining=limit - window.count,
                )

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded",
                tenant_id=context.tenant_id,
                category=category,
                limit=limit,
                reset_time=decision.reset_time.isoformat(),
            )
        return decision

    def get_count(self, tenant_id: str, category: str) -> int:
        """Requests counted in the current window (0 once the window has elapsed)."""
        shard = self._windows.shard_for(tenant_id)
        with shard.lock:
            window: Optional[_Window] = shard.items.get(f"{tenant_id}:{category}")
            if window is None or self._is_elapsed(window, self._clock()):
                return 0
            return window.count

    def cleanup_expired(self) -> int:
        """Drop every window that has elapsed. Returns how many were removed."""
        now = self._clock()
        removed = 0
        for shard in self._windows.shards():
            with shard.lock:
                removed += self._sweep_shard(shard, now)
        if removed:
            logger.debug("Elapsed rate-limit windows removed", removed=removed)
        return removed

    def __len__(self) -> int:
        return len(self._windows)

    def reset(self, tenant_id: str) -> None:
        prefix = f"{tenant_id}:"
        shard = self._windows.shard_for(tenant_id)
        with shard.lock:
            for key in [k for k in shard.items if k.startswith(prefix)]:
                del shard.items[key]

    def clear(self) -> int:
        return self._windows.clear()
