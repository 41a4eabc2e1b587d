"""
Per-tenant usage counters.

Running totals of operations and approximate data volume, used for soft
quota checks. This is a single-process safeguard, not an authoritative quota
system: counters live in memory and restart from zero with the process.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from src.shared.logging import get_logger
from src.shared.utils.sharding import ShardedMap
from src.tenancy.domain.value_objects import AccessDecision, TenantContext

logger = get_logger(__name__)

DEFAULT_OPERATION_CEILING = 1000
DEFAULT_AVG_RECORD_BYTES = 1000
ARCHIVE_RECOMMENDATION_BYTES = 100_000
UPGRADE_RECOMMENDATION_OPERATIONS = 5000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UsageRecord:
    operations: Dict[str, int] = field(default_factory=dict)
    data_size: int = 0
    last_activity: datetime = field(default_factory=_utcnow)

    @property
    def total_operations(self) -> int:
        return sum(self.operations.values())


@dataclass(frozen=True)
class UsageSummary:
    total_operations: int
    data_size: int
    last_activity: datetime


@dataclass(frozen=True)
class UsageReport:
    summary: UsageSummary
    breakdown: Dict[str, int]
    recommendations: List[str]


class TenantUsageMonitor:
    def __init__(
        self,
        *,
        operation_ceiling: int = DEFAULT_OPERATION_CEILING,
        avg_record_bytes: int = DEFAULT_AVG_RECORD_BYTES,
        shards: int = 16,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.operation_ceiling = operation_ceiling
        self.avg_record_bytes = avg_record_bytes
        self._now = now
        self._usage: ShardedMap[UsageRecord] = ShardedMap(shards)

    def record_operation(self, tenant_id: str, operation: str, data_size: int = 0) -> None:
        if not tenant_id:
            return
        shard = self._usage.shard_for(tenant_id)
        with shard.lock:
            record = shard.items.get(tenant_id)
            if record is None:
                record = shard.items[tenant_id] = UsageRecord(last_activity=self._now())
            record.operations[operation] = record.operations.get(operation, 0) + 1
            record.data_size += max(0, int(data_size))
            record.last_activity = self._now()

    def get_usage(self, tenant_id: str) -> Optional[UsageRecord]:
        """Snapshot of a tenant's usage; mutating it does not affect the monitor."""
        if not tenant_id:
            return None
        shard = self._usage.shard_for(tenant_id)
        with shard.lock:
            record = shard.items.get(tenant_id)
            if record is None:
                return None
            return replace(record, operations=dict(record.operations))

    def check_limits(self, tenant_id: str, context: TenantContext) -> AccessDecision:
        usage = self.get_usage(tenant_id)
        if usage is None:
            return AccessDecision.allow()
        limits = context.limits if context is not None else None
        if limits is None:
            return AccessDecision.allow()

        data_limit = limits.max_transactions * self.avg_record_bytes
        if usage.data_size > data_limit:
            return AccessDecision.deny(
                f"Data usage limit exceeded. Used: {usage.data_size} bytes, Limit: {data_limit} bytes"
            )

        if usage.total_operations > self.operation_ceiling:
            return AccessDecision.deny(
                "Operation rate limit exceeded. Too many operations in current session."
            )

        return AccessDecision.allow()

    def get_usage_report(self, tenant_id: str) -> Optional[UsageReport]:
        usage = self.get_usage(tenant_id)
        if usage is None:
            return None

        recommendations: List[str] = []
        if usage.data_size > ARCHIVE_RECOMMENDATION_BYTES:
            recommendations.append("Consider data archiving for old records")
        if usage.total_operations > UPGRADE_RECOMMENDATION_OPERATIONS:
            recommendations.append("High operation volume detected - consider upgrading plan")

        return UsageReport(
            summary=UsageSummary(
                total_operations=usage.total_operations,
                data_size=usage.data_size,
                last_activity=usage.last_activity,
            ),
            breakdown=usage.operations,
            recommendations=recommendations,
        )

    def cleanup_old_data(self, max_age_days: int = 30) -> int:
        """Drop usage records of tenants inactive for longer than `max_age_days`."""
        cutoff = self._now() - timedelta(days=max_age_days)
        removed = 0
        for shard in self._usage.shards():
            with shard.lock:
                stale = [t for t, rec in shard.items.items() if rec.last_activity < cutoff]
                for tenant_id in stale:
                    del shard.items[tenant_id]
                removed += len(stale)
        if removed:
            logger.info("Usage records of inactive tenants removed", removed=removed, max_age_days=max_age_days)
        return removed

    def clear(self) -> int:
        return self._usage.clear()
