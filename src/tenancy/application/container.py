"""
Process-wide tenancy services.

Built once at startup from TenancySettings and passed to request handlers;
nothing in the package reaches for module-level singletons.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from src.shared.config import TenancySettings, get_settings
from src.shared.logging import get_logger
from src.tenancy.application.data_manager import TenantDataManager
from src.tenancy.application.middleware import TenantIsolationMiddleware
from src.tenancy.infrastructure.audit_log import TenantAuditLogger
from src.tenancy.infrastructure.cache import TenantAwareCache
from src.tenancy.infrastructure.data_security import TenantDataSecurity
from src.tenancy.infrastructure.rate_limiter import FixedWindowRateLimiter
from src.tenancy.infrastructure.usage_monitor import TenantUsageMonitor

logger = get_logger(__name__)


@dataclass
class TenantServices:
    settings: TenancySettings
    cache: TenantAwareCache
    usage_monitor: TenantUsageMonitor
    audit_logger: TenantAuditLogger
    rate_limiter: FixedWindowRateLimiter
    data_security: TenantDataSecurity
    middleware: TenantIsolationMiddleware
    data_manager: TenantDataManager

    @classmethod
    def from_settings(cls, settings: Optional[TenancySettings] = None) -> "TenantServices":
        s = settings or get_settings()

        cache = TenantAwareCache(
            max_entries=s.CACHE_MAX_ENTRIES,
            default_ttl=s.CACHE_DEFAULT_TTL_SECONDS,
            max_pattern_length=s.CACHE_MAX_PATTERN_LENGTH,
            shards=s.LOCK_SHARDS,
        )
        usage_monitor = TenantUsageMonitor(
            operation_ceiling=s.USAGE_OPERATION_CEILING,
            avg_record_bytes=s.USAGE_AVG_RECORD_BYTES,
            shards=s.LOCK_SHARDS,
        )
        audit_logger = TenantAuditLogger(
            max_entries_per_tenant=s.AUDIT_MAX_ENTRIES_PER_TENANT,
            shards=s.LOCK_SHARDS,
        )
        rate_limiter = FixedWindowRateLimiter(
            window_seconds=s.RATE_LIMIT_WINDOW_SECONDS,
            shards=s.LOCK_SHARDS,
        )

        services = cls(
            settings=s,
            cache=cache,
            usage_monitor=usage_monitor,
            audit_logger=audit_logger,
            rate_limiter=rate_limiter,
            data_security=TenantDataSecurity(s.DATA_ENCRYPTION_KEY),
            middleware=TenantIsolationMiddleware(
                audit_logger=audit_logger,
                usage_monitor=usage_monitor,
                rate_limiter=rate_limiter,
                cache=cache,
            ),
            data_manager=TenantDataManager(audit_logger),
        )
        logger.info("Tenancy services initialized", environment=s.ENVIRONMENT, shards=s.LOCK_SHARDS)
        return services

    def cleanup_usage(self) -> int:
        """Drop usage of tenants idle past the configured retention."""
        return self.usage_monitor.cleanup_old_data(self.settings.USAGE_RETENTION_DAYS)

    def sweep(self) -> Dict[str, int]:
        """Periodic housekeeping: expired cache entries, elapsed rate windows, idle usage."""
        return {
            "cache": self.cache.cleanup(),
            "rate_limits": self.rate_limiter.cleanup_expired(),
            "usage": self.cleanup_usage(),
        }

    def shutdown(self) -> Dict[str, int]:
        """Drain all in-memory state. Returns how many items each store dropped."""
        drained = {
            "cache": self.cache.close(),
            "usage": self.usage_monitor.clear(),
            "audit": self.audit_logger.clear(),
            "rate_limits": self.rate_limiter.clear(),
        }
        logger.info("Tenancy services shut down", **drained)
        return drained
