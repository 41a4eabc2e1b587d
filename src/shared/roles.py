# src/shared/roles.py

from enum import Enum
from typing import Iterable, Set


class Role(str, Enum):
    """
    Farm user roles with hierarchical permissions.

    Hierarchy (highest to lowest):
    - OWNER: Farm owner, can do everything within the tenant
    - ADMIN: Farm administrator, can touch any record within the tenant
    - MANAGER: Manages day-to-day records, only their own
    - WORKER: Field staff, only their own records
    - VIEWER: Read-only access
    """
    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    WORKER = "worker"
    VIEWER = "viewer"


# Role hierarchy levels
_ROLE_HIERARCHY = {
    Role.OWNER: 100,
    Role.ADMIN: 80,
    Role.MANAGER: 40,
    Role.WORKER: 20,
    Role.VIEWER: 10,
}


def has_min_role(actual_role: Role, required_role: Role) -> bool:
    """
    Check if actual_role has at least the privileges of required_role.

    Args:
        actual_role: The role to check
        required_role: The minimum required role

    Returns:
        True if actual_role >= required_role in the hierarchy
    """
    return _ROLE_HIERARCHY.get(actual_role, 0) >= _ROLE_HIERARCHY.get(required_role, 0)


def normalize_roles(v) -> Set[str]:
    """
    Accepts: list/tuple/set, space/comma-separated string, or None.
    Returns: lowercase set[str]
    """
    if not v:
        return set()
    if isinstance(v, str):
        # allow comma or whitespace separated
        parts = [p for chunk in v.split(",") for p in chunk.split()]
        return {p.strip().lower() for p in parts if p.strip()}
    if isinstance(v, Iterable):
        return {str(x).strip().lower() for x in v if str(x).strip()}
    return set()


def has_admin_role(roles: Iterable[str]) -> bool:
    """True when any of the roles grants tenant-wide administration (ADMIN or above)."""
    for name in normalize_roles(roles):
        try:
            role = Role(name)
        except ValueError:
            continue
        if has_min_role(role, Role.ADMIN):
            return True
    return False
