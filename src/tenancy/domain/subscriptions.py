"""
Subscription tier table: numeric quotas, enabled features, trial length and
per-minute rate-limit ceilings for each plan.
"""
from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from src.shared.exceptions import ValidationError
from src.tenancy.domain.value_objects import Subscription, SubscriptionLimits, SubscriptionTier

_BASIC_FEATURES = ["basic_animals", "basic_financial", "basic_health"]

SUBSCRIPTION_TIERS: Dict[SubscriptionTier, dict] = {
    SubscriptionTier.BETA: {
        "max_animals": 50,
        "max_transactions": 100,
        "max_users": 3,
        "features": list(_BASIC_FEATURES),
        "trial_days": 30,
    },
    SubscriptionTier.PROFESSIONAL: {
        "max_animals": 500,
        "max_transactions": 1000,
        "max_users": 10,
        "features": _BASIC_FEATURES + ["advanced_analytics", "breeding_module"],
        "trial_days": 0,
    },
    SubscriptionTier.ENTERPRISE: {
        "max_animals": 5000,
        "max_transactions": 10000,
        "max_users": 50,
        "features": _BASIC_FEATURES + [
            "advanced_analytics",
            "breeding_module",
            "rfid_integration",
            "api_access",
        ],
        "trial_days": 0,
    },
}

# Requests per rate-limit window, by operation category
RATE_LIMITS: Dict[SubscriptionTier, Dict[str, int]] = {
    SubscriptionTier.BETA: {"read": 100, "write": 20, "delete": 5},
    SubscriptionTier.PROFESSIONAL: {"read": 1000, "write": 100, "delete": 20},
    SubscriptionTier.ENTERPRISE: {"read": 10000, "write": 500, "delete": 100},
}
DEFAULT_RATE_LIMIT = 10


def get_subscription_limits(tier: SubscriptionTier | str) -> dict:
    """Full tier config (limits, features, trial_days). Returns a copy."""
    config = SUBSCRIPTION_TIERS[SubscriptionTier.parse(tier)]
    return {**config, "features": list(config["features"])}


def subscription_for(tier: SubscriptionTier | str) -> Subscription:
    parsed = SubscriptionTier.parse(tier)
    config = SUBSCRIPTION_TIERS[parsed]
    return Subscription(
        tier=parsed,
        limits=SubscriptionLimits(
            max_animals=config["max_animals"],
            max_transactions=config["max_transactions"],
            max_users=config["max_users"],
        ),
    )


def get_available_features(tier: SubscriptionTier | str) -> List[str]:
    return list(SUBSCRIPTION_TIERS[SubscriptionTier.parse(tier)]["features"])


def validate_feature_access(tier: SubscriptionTier | str, feature: str) -> bool:
    return feature in SUBSCRIPTION_TIERS[SubscriptionTier.parse(tier)]["features"]


def calculate_usage_percentage(current_usage: Mapping[str, int], tier: SubscriptionTier | str) -> Dict[str, float]:
    """
    Usage as a percentage of each quota, for the UI quota bars.

    Missing counts are treated as 0. Values above 100 are returned as-is so
    the UI can show how far over quota a tenant is.
    """
    config = SUBSCRIPTION_TIERS[SubscriptionTier.parse(tier)]
    return {
        "animals": current_usage.get("animals", 0) / config["max_animals"] * 100,
        "transactions": current_usage.get("transactions", 0) / config["max_transactions"] * 100,
        "users": current_usage.get("users", 0) / config["max_users"] * 100,
    }


def get_rate_limit(tier: SubscriptionTier | str, category: str) -> int:
    try:
        parsed = SubscriptionTier.parse(tier)
    except ValidationError:
        return DEFAULT_RATE_LIMIT
    return RATE_LIMITS[parsed].get(category, DEFAULT_RATE_LIMIT)


def is_trial_expired(trial_end: datetime, *, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now(timezone.utc)
    return now > trial_end


def get_trial_days_remaining(trial_end: datetime, *, now: Optional[datetime] = None) -> int:
    now = now or datetime.now(timezone.utc)
    days = math.ceil((trial_end - now).total_seconds() / 86400)
    return max(0, days)
