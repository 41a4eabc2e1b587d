"""
Tenancy value objects.

Immutable values passed by value through the call chain: the caller's
TenantContext, its subscription, and the decisions the isolation layer
returns instead of raising.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

from src.shared.exceptions import ValidationError


class SubscriptionTier(str, Enum):
    BETA = "beta"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"

    @classmethod
    def parse(cls, value: "SubscriptionTier | str") -> "SubscriptionTier":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown subscription tier: {value!r}",
                details={"allowed": [t.value for t in cls]},
            ) from None


@dataclass(frozen=True)
class SubscriptionLimits:
    max_animals: int
    max_transactions: int
    max_users: int

    def __post_init__(self) -> None:
        for name in ("max_animals", "max_transactions", "max_users"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ValidationError(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class Subscription:
    tier: SubscriptionTier
    limits: SubscriptionLimits


@dataclass(frozen=True)
class TenantContext:
    """Immutable description of the authenticated caller.

    Created once per request by the auth layer and never mutated. A context
    with an empty tenant_id/user_id or no subscription is *invalid*: stamping
    with it raises, filtering with it returns nothing.
    """

    tenant_id: str
    user_id: str
    roles: FrozenSet[str] = field(default_factory=frozenset)
    permissions: FrozenSet[str] = field(default_factory=frozenset)
    subscription: Optional[Subscription] = None

    def __post_init__(self) -> None:
        # accept any iterable for roles/permissions but store frozensets
        if not isinstance(self.roles, frozenset):
            object.__setattr__(self, "roles", frozenset(self.roles or ()))
        if not isinstance(self.permissions, frozenset):
            object.__setattr__(self, "permissions", frozenset(self.permissions or ()))

    @classmethod
    def for_tier(
        cls,
        tenant_id: str,
        user_id: str,
        tier: "SubscriptionTier | str",
        *,
        roles: Iterable[str] = (),
        permissions: Iterable[str] = (),
    ) -> "TenantContext":
        """Build a context whose limits come from the subscription table."""
        from src.tenancy.domain.subscriptions import subscription_for

        return cls(
            tenant_id=tenant_id,
            user_id=user_id,
            roles=frozenset(roles),
            permissions=frozenset(permissions),
            subscription=subscription_for(tier),
        )

    @property
    def tier(self) -> Optional[SubscriptionTier]:
        return self.subscription.tier if self.subscription else None

    @property
    def limits(self) -> Optional[SubscriptionLimits]:
        return self.subscription.limits if self.subscription else None

    def to_log_context(self) -> Dict[str, Any]:
        """Non-sensitive fields suitable for structured logs."""
        ctx: Dict[str, Any] = {"tenant_id": self.tenant_id, "user_id": self.user_id}
        if self.subscription:
            ctx["tier"] = self.subscription.tier.value
        return ctx


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a limit/ownership check. Limits are never enforced by raising."""

    allowed: bool
    reason: Optional[str] = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(False, reason)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    reset_time: Optional[datetime] = None
    limit: int = 0
    remaining: int = 0
