# src/shared/error_codes.py
# Central mapping that aligns with the dashboard's error contract.
# Keep keys stable: the UI layer surfaces these messages directly.
ERROR_CODES = {
    # ─── Validation ─────────────────────────────────────────────────────────
    "validation_error": {
        "http": 422,
        "message": "Validation failed for one or more fields."
    },

    # ─── Tenant isolation ──────────────────────────────────────────────────
    "invalid_tenant_context": {
        "http": 403,
        "message": "Invalid tenant context provided."
    },
    "import_rejected": {
        "http": 409,
        "message": "Import contains records that do not belong to this tenant."
    },

    # ─── Infrastructure ────────────────────────────────────────────────────
    "crypto_error": {
        "http": 500,
        "message": "Unable to process protected data."
    },
    "internal_error": {
        "http": 500,
        "message": "An unexpected error occurred."
    },
}
