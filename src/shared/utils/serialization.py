# /src/shared/utils/serialization.py
"""
Safe JSON helpers with support for datetime, UUID, Decimal, enums and sets.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

class SafeEncoder(json.JSONEncoder):
    def default(self, o: Any):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, (UUID,)):
            return str(o)
        if isinstance(o, (Decimal,)):
            return float(o)
        if isinstance(o, Enum):
            return o.value
        if isinstance(o, (set, frozenset)):
            return sorted(o, key=str)
        return super().default(o)

def dumps(data: Any, *, canonical: bool = False) -> str:
    # canonical output (sorted keys) is what checksums are computed over
    return json.dumps(data, separators=(",", ":"), cls=SafeEncoder, sort_keys=canonical)

def estimate_size(data: Any) -> int:
    """Approximate payload size in bytes; falls back to repr() for non-JSON values."""
    try:
        return len(dumps(data).encode("utf-8"))
    except (TypeError, ValueError):
        return len(repr(data).encode("utf-8"))
