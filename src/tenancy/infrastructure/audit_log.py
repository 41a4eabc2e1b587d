"""
Audit Logging for Tenant Data Operations
Bounded, append-only activity trail per tenant
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from src.shared.logging import get_logger
from src.shared.utils.sharding import ShardedMap

logger = get_logger("audit")

DEFAULT_MAX_ENTRIES_PER_TENANT = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AuditEntry:
    tenant_id: str
    user_id: str
    action: str
    resource: str
    resource_id: Optional[str]
    timestamp: datetime
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ActivitySummary:
    total_actions: int
    actions_by_type: Dict[str, int]
    actions_by_user: Dict[str, int]


class TenantAuditLogger:
    """
    Per-tenant audit trail.

    Audit logs should be:
    - Append-only (entries are frozen)
    - Ordered per tenant in call order
    - Bounded: each tenant keeps its newest `max_entries_per_tenant` entries,
      trimming one tenant never touches another tenant's entries
    """

    def __init__(
        self,
        *,
        max_entries_per_tenant: int = DEFAULT_MAX_ENTRIES_PER_TENANT,
        shards: int = 16,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_entries_per_tenant <= 0:
            raise ValueError("max_entries_per_tenant must be > 0")
        self.max_entries_per_tenant = max_entries_per_tenant
        self._now = now
        self._logs: ShardedMap[Deque[AuditEntry]] = ShardedMap(shards)

    def log_activity(
        self,
        tenant_id: str,
        user_id: str,
        action: str,
        resource: str,
        resource_id: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> AuditEntry:
        """
        Append one activity entry.

        Args:
            tenant_id: Owning tenant
            user_id: Acting user
            action: create, update, delete, export, import, ...
            resource: Free-form resource type (animal, api_operation, tenant_data, ...)
            resource_id: Optional id of the touched resource
            details: Additional metadata

        Returns:
            The stored entry
        """
        entry = AuditEntry(
            tenant_id=tenant_id,
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            timestamp=self._now(),
            details=MappingProxyType(dict(details or {})),
        )
        shard = self._logs.shard_for(tenant_id)
        with shard.lock:
            log = shard.items.get(tenant_id)
            if log is None:
                # maxlen drops the oldest entry of this tenant only
                log = shard.items[tenant_id] = deque(maxlen=self.max_entries_per_tenant)
            log.append(entry)

        target = f"{resource}:{resource_id}" if resource_id else resource
        logger.info(
            f"Audit: {action} {target}",
            tenant_id=tenant_id,
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            details=dict(entry.details),
        )
        return entry

    def get_tenant_logs(self, tenant_id: str, limit: int = 100) -> List[AuditEntry]:
        """Most recent first, at most `limit` entries."""
        if limit <= 0:
            return []
        shard = self._logs.shard_for(tenant_id)
        with shard.lock:
            log = shard.items.get(tenant_id)
            if not log:
                return []
            entries = list(log)
        entries.reverse()
        return entries[:limit]

    def get_activity_summary(self, tenant_id: str, hours: float = 24) -> ActivitySummary:
        cutoff = self._now() - timedelta(hours=hours)
        shard = self._logs.shard_for(tenant_id)
        with shard.lock:
            recent = [e for e in shard.items.get(tenant_id, ()) if e.timestamp >= cutoff]

        actions_by_type: Dict[str, int] = {}
        actions_by_user: Dict[str, int] = {}
        for e in recent:
            actions_by_type[e.action] = actions_by_type.get(e.action, 0) + 1
            actions_by_user[e.user_id] = actions_by_user.get(e.user_id, 0) + 1

        return ActivitySummary(
            total_actions=len(recent),
            actions_by_type=actions_by_type,
            actions_by_user=actions_by_user,
        )

    def clear(self) -> int:
        return self._logs.clear()
