"""
Tenant-scoped record shapes.

Records come out of the document store as plain mappings. Every one of them
carries a `tenant_id`; the TypedDicts below make that guarantee visible to the
type checker at the call sites that build or consume them.
"""
from __future__ import annotations

from typing import Any, Mapping, NotRequired, Optional, Required, TypedDict


class TenantRecord(TypedDict, total=False):
    tenant_id: Required[str]
    id: str
    created_by: str
    updated_by: str
    tenant_validated: bool


class AnimalRecord(TenantRecord, total=False):
    name: str
    species: str
    breed: str
    rfid_tag: str


class HealthRecord(TenantRecord, total=False):
    animal_id: str
    record_type: str
    notes: str


class FinancialRecord(TenantRecord, total=False):
    amount: float
    category: str
    transaction_type: str


class TaskRecord(TenantRecord, total=False):
    title: str
    status: str
    assigned_to: NotRequired[str]


def record_tenant_id(record: Mapping[str, Any]) -> Optional[str]:
    """The record's owning tenant, or None for malformed records."""
    value = record.get("tenant_id") if isinstance(record, Mapping) else None
    return value if isinstance(value, str) and value else None
