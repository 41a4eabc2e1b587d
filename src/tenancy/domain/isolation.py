"""
Tenant isolation rules.

Pure functions that decide whether a record belongs to the caller's tenant,
scope collections accordingly, stamp new records with tenant/owner metadata
and check usage against subscription limits.

`validate_tenant_access` is the only place the tenant comparison is made;
everything else in the package goes through it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, TypeVar

from src.shared.exceptions import InvalidTenantContextError
from src.shared.logging import get_logger, log_security_event
from src.shared.roles import has_admin_role
from src.tenancy.domain.records import TenantRecord, record_tenant_id
from src.tenancy.domain.value_objects import AccessDecision, TenantContext

logger = get_logger(__name__)

R = TypeVar("R", bound=Mapping[str, Any])

# (count key, limits attribute, label used in the reason string)
_LIMIT_CHECKS = (
    ("animals", "max_animals", "Animal"),
    ("transactions", "max_transactions", "Transaction"),
    ("users", "max_users", "User"),
)


@dataclass
class BatchPartition:
    valid: List[Any] = field(default_factory=list)
    invalid: List[Any] = field(default_factory=list)


def validate_tenant_access(record_tenant_id: Optional[str], context: Optional[TenantContext]) -> bool:
    if not record_tenant_id or context is None or not context.tenant_id:
        return False
    return record_tenant_id == context.tenant_id


def validate_tenant_context(context: Optional[TenantContext]) -> bool:
    return bool(
        context is not None
        and context.tenant_id
        and context.user_id
        and context.subscription is not None
    )


def filter_by_tenant(records: Iterable[R], context: Optional[TenantContext]) -> List[R]:
    """
    Records that belong to the caller's tenant, in input order.

    An invalid context yields an empty list rather than an error: an empty
    result leaks nothing.
    """
    if not validate_tenant_context(context):
        logger.warning("Tenant filter called with invalid context; returning no records")
        return []

    kept: List[R] = []
    dropped = 0
    for record in records:
        if validate_tenant_access(record_tenant_id(record), context):
            kept.append(record)
        else:
            dropped += 1

    if dropped:
        log_security_event(
            "cross_tenant_records_filtered",
            tenant_id=context.tenant_id,
            user_id=context.user_id,
            details={"dropped": dropped, "kept": len(kept)},
        )
    return kept


def validate_batch_tenant_access(records: Iterable[R], context: Optional[TenantContext]) -> BatchPartition:
    partition = BatchPartition()
    for record in records:
        if validate_tenant_access(record_tenant_id(record), context):
            partition.valid.append(record)
        else:
            partition.invalid.append(record)
    return partition


def with_tenant_context(record: Mapping[str, Any], context: Optional[TenantContext]) -> TenantRecord:
    """
    Copy of `record` stamped with the caller's tenant and user.

    `tenant_validated` marks objects that went through this function, as
    opposed to ones deserialized straight from storage.

    Raises:
        InvalidTenantContextError: if the context is missing tenant, user or subscription.
    """
    if not validate_tenant_context(context):
        raise InvalidTenantContextError("Invalid tenant context provided")

    return {
        **record,
        "tenant_id": context.tenant_id,
        "created_by": context.user_id,
        "updated_by": context.user_id,
        "tenant_validated": True,
    }


def tag_tenant_validated(records: Iterable[R], context: Optional[TenantContext]) -> List[TenantRecord]:
    """Scope `records` to the caller and return copies flagged as tenant-validated."""
    return [{**record, "tenant_validated": True} for record in filter_by_tenant(records, context)]


def validate_tenant_limits(context: TenantContext, current_counts: Mapping[str, int]) -> AccessDecision:
    """
    First exceeded quota among the supplied counts, or allowed.

    A count equal to its limit is already exceeded: the check runs before a
    create, so reaching the limit means the next record would go over.
    """
    limits = context.limits if context is not None else None
    if limits is None:
        return AccessDecision.deny("Subscription limits unavailable for this tenant")

    for key, attr, label in _LIMIT_CHECKS:
        current = current_counts.get(key)
        if current is None:
            continue
        limit = getattr(limits, attr)
        if current >= limit:
            return AccessDecision.deny(f"{label} limit exceeded. Current: {current}, Limit: {limit}")
    return AccessDecision.allow()


def validate_data_ownership(record: Mapping[str, Any], context: TenantContext) -> AccessDecision:
    if not validate_tenant_access(record_tenant_id(record), context):
        log_security_event(
            "cross_tenant_access_denied",
            tenant_id=context.tenant_id if context else None,
            user_id=context.user_id if context else None,
            details={"record_tenant_id": record_tenant_id(record)},
        )
        return AccessDecision.deny("Access denied: Data belongs to different tenant")

    created_by = record.get("created_by")
    if not has_admin_role(context.roles) and created_by and created_by != context.user_id:
        return AccessDecision.deny("Access denied: Can only access own data")

    return AccessDecision.allow()


def _format_params(params: Optional[Mapping[str, Any]]) -> str:
    if not params:
        return ""
    return "&".join(f"{key}={params[key]}" for key in sorted(params))


def endpoint_cache_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Cache key without the tenant prefix (the cache adds its own namespace)."""
    suffix = _format_params(params)
    return f"{endpoint}:{suffix}" if suffix else endpoint


def generate_tenant_cache_key(endpoint: str, tenant_id: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Deterministic `tenant_id:endpoint[:k1=v1&k2=v2]` key.

    Params are sorted by name so identical parameter sets give identical keys
    regardless of call-site ordering.
    """
    return f"{tenant_id}:{endpoint_cache_key(endpoint, params)}"
