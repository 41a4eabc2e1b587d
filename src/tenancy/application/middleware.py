"""
Tenant isolation middleware for data operations.

Composition point every request handler goes through:
- writes: stamp with tenant/owner metadata, audit, meter, drop stale cache
- reads: re-filter outbound records by tenant before they leave the process
- rate limiting: fixed-window counter per (tenant, operation category)
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional

from src.shared.exceptions import ValidationError
from src.shared.logging import get_logger
from src.shared.utils.serialization import estimate_size
from src.shared.utils.tenant_ctxvars import bind_tenant_ctx
from src.tenancy.domain.isolation import endpoint_cache_key, filter_by_tenant, with_tenant_context
from src.tenancy.domain.records import TenantRecord
from src.tenancy.domain.value_objects import RateLimitDecision, TenantContext
from src.tenancy.infrastructure.audit_log import TenantAuditLogger
from src.tenancy.infrastructure.cache import TenantAwareCache
from src.tenancy.infrastructure.rate_limiter import FixedWindowRateLimiter
from src.tenancy.infrastructure.usage_monitor import TenantUsageMonitor

logger = get_logger(__name__)


class ApiOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"

    @classmethod
    def parse(cls, value: "ApiOperation | str") -> "ApiOperation":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown API operation: {value!r}",
                details={"allowed": [op.value for op in cls]},
            ) from None


class TenantIsolationMiddleware:
    def __init__(
        self,
        *,
        audit_logger: TenantAuditLogger,
        usage_monitor: TenantUsageMonitor,
        rate_limiter: FixedWindowRateLimiter,
        cache: Optional[TenantAwareCache] = None,
    ) -> None:
        self.audit_logger = audit_logger
        self.usage_monitor = usage_monitor
        self.rate_limiter = rate_limiter
        self.cache = cache

    def apply_to_api_call(
        self,
        data: Mapping[str, Any],
        context: TenantContext,
        operation: ApiOperation | str,
    ) -> TenantRecord:
        """
        Stamp `data` for persistence and record the write.

        Raises:
            InvalidTenantContextError: the write must not proceed unstamped
            ValidationError: `operation` is not create, update or delete
        """
        op = ApiOperation.parse(operation).value
        stamped = with_tenant_context(data, context)
        data_size = estimate_size(data)

        with bind_tenant_ctx(context):
            self.audit_logger.log_activity(
                context.tenant_id,
                context.user_id,
                op,
                "api_operation",
                details={
                    "data_type": type(data).__name__,
                    "operation": op,
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "data_size": data_size,
                },
            )
            self.usage_monitor.record_operation(context.tenant_id, op, data_size)
            if self.cache is not None:
                self.cache.invalidate_tenant(context.tenant_id)

        return stamped

    def validate_api_response(self, records: Iterable[TenantRecord], context: TenantContext) -> List[TenantRecord]:
        """Scope outbound records to the caller's tenant and meter the read."""
        scoped = filter_by_tenant(records, context)
        if context is not None and context.tenant_id:
            self.usage_monitor.record_operation(context.tenant_id, "read", estimate_size(scoped))
        return scoped

    def check_rate_limit(self, context: TenantContext, operation_category: str) -> RateLimitDecision:
        return self.rate_limiter.check(context, operation_category)

    def cached_read(
        self,
        context: TenantContext,
        endpoint: str,
        loader: Callable[[], Iterable[TenantRecord]],
        *,
        params: Optional[Mapping[str, Any]] = None,
        ttl: Optional[float] = None,
    ) -> List[TenantRecord]:
        """
        Serve a tenant-scoped read from the cache, falling back to `loader`.

        Loader results are scoped before they are cached, and whatever comes
        back is scoped again on the way out. Cached records are copied in both
        directions, so callers never hold a reference into the cache.
        """
        if self.cache is None:
            return self.validate_api_response(loader(), context)

        key = endpoint_cache_key(endpoint, params)
        cached = self.cache.get(key, context.tenant_id)
        if cached is not None:
            self.usage_monitor.record_operation(context.tenant_id, "cache_hit")
            return self.validate_api_response(_copy_records(cached), context)

        scoped = filter_by_tenant(loader(), context)
        self.cache.set(key, _copy_records(scoped), context.tenant_id, ttl)
        return self.validate_api_response(scoped, context)


def _copy_records(records: Iterable[TenantRecord]) -> List[TenantRecord]:
    return [TenantRecord(**r) for r in records]
