"""
Tenant Data Export/Import
Scoped export envelopes and validated, re-stamped imports
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping

from pydantic import BaseModel, ConfigDict, Field

from src.shared.exceptions import ImportRejectedError
from src.shared.logging import get_logger
from src.tenancy.domain.isolation import filter_by_tenant, validate_tenant_access, with_tenant_context
from src.tenancy.domain.records import (
    AnimalRecord,
    FinancialRecord,
    HealthRecord,
    TaskRecord,
    TenantRecord,
    record_tenant_id,
)
from src.tenancy.domain.value_objects import TenantContext
from src.tenancy.infrastructure.audit_log import TenantAuditLogger

logger = get_logger(__name__)

EXPORT_FORMAT_VERSION = "1.0"

# payload key -> label used in validation messages
COLLECTIONS: Dict[str, str] = {
    "animals": "animals",
    "health_records": "health records",
    "financial_records": "financial records",
    "tasks": "tasks",
}


class ExportMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    export_date: datetime
    record_counts: Dict[str, int]
    version: str = Field(EXPORT_FORMAT_VERSION, description="Envelope format version")


class ExportData(BaseModel):
    animals: List[Dict[str, Any]] = Field(default_factory=list)
    health_records: List[Dict[str, Any]] = Field(default_factory=list)
    financial_records: List[Dict[str, Any]] = Field(default_factory=list)
    tasks: List[Dict[str, Any]] = Field(default_factory=list)


class TenantDataExport(BaseModel):
    """
    Export envelope.

    Attributes:
        metadata: Owning tenant, export time, per-collection counts, format version
        data: The tenant's records, one list per collection
    """

    metadata: ExportMetadata
    data: ExportData


@dataclass
class ImportValidation:
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


class TenantDataManager:
    def __init__(self, audit_logger: TenantAuditLogger) -> None:
        self.audit_logger = audit_logger

    def export_tenant_data(
        self,
        context: TenantContext,
        animals: Iterable[AnimalRecord] = (),
        health_records: Iterable[HealthRecord] = (),
        financial_records: Iterable[FinancialRecord] = (),
        tasks: Iterable[TaskRecord] = (),
    ) -> TenantDataExport:
        """
        Build an export of the caller's records.

        Every collection is scoped through the tenant filter, so records of
        other tenants handed in by mistake never reach the envelope.
        """
        data = ExportData(
            animals=[dict(r) for r in filter_by_tenant(animals, context)],
            health_records=[dict(r) for r in filter_by_tenant(health_records, context)],
            financial_records=[dict(r) for r in filter_by_tenant(financial_records, context)],
            tasks=[dict(r) for r in filter_by_tenant(tasks, context)],
        )
        record_counts = {key: len(getattr(data, key)) for key in COLLECTIONS}

        self.audit_logger.log_activity(
            context.tenant_id,
            context.user_id,
            "export",
            "tenant_data",
            details={"record_counts": record_counts},
        )

        return TenantDataExport(
            metadata=ExportMetadata(
                tenant_id=context.tenant_id,
                export_date=datetime.now(timezone.utc),
                record_counts=record_counts,
            ),
            data=data,
        )

    def validate_import_data(self, payload: Mapping[str, Any], context: TenantContext) -> ImportValidation:
        errors: List[str] = []
        warnings: List[str] = []

        for key, label in COLLECTIONS.items():
            records = payload.get(key) or []
            if any(not validate_tenant_access(record_tenant_id(r), context) for r in records):
                errors.append(f"Invalid tenant ID in {label}")

        rfid_counts = Counter(
            r.get("rfid_tag")
            for r in payload.get("animals") or []
            if isinstance(r, Mapping) and r.get("rfid_tag")
        )
        duplicates = sorted(tag for tag, n in rfid_counts.items() if n > 1)
        if duplicates:
            warnings.append(f"Duplicate RFID tags found: {', '.join(duplicates)}")

        return ImportValidation(valid=not errors, errors=errors, warnings=warnings)

    def import_tenant_data(self, payload: Mapping[str, Any], context: TenantContext) -> Dict[str, List[TenantRecord]]:
        """
        Validate and re-stamp an import payload.

        Returns:
            One list of stamped records per collection

        Raises:
            ImportRejectedError: any collection holds records of another tenant
            InvalidTenantContextError: the caller's context cannot stamp records
        """
        validation = self.validate_import_data(payload, context)
        if not validation.valid:
            logger.warning(
                "Import rejected",
                tenant_id=context.tenant_id if context else None,
                errors=validation.errors,
            )
            raise ImportRejectedError(
                "Import payload failed tenant validation",
                details={"errors": validation.errors, "warnings": validation.warnings},
            )

        stamped = {
            key: [with_tenant_context(r, context) for r in payload.get(key) or []]
            for key in COLLECTIONS
        }

        self.audit_logger.log_activity(
            context.tenant_id,
            context.user_id,
            "import",
            "tenant_data",
            details={
                "record_counts": {key: len(rows) for key, rows in stamped.items()},
                "warnings": validation.warnings,
            },
        )
        return stamped
