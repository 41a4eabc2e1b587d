# src/shared/config.py

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class TenancySettings(BaseSettings):
    """
    Settings for the tenancy core (Pydantic v2).

    - Aliases match the .env keys (ENVIRONMENT, LOG_LEVEL, TENANCY_*).
    - Every limit has the default the dashboard has always shipped with.
    """

    # ------------------------------------------------------------------------------------
    # App / Observability
    # ------------------------------------------------------------------------------------
    ENVIRONMENT: str = Field(default="dev")  # local|dev|staging|prod
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Optional[str] = Field(default=None)  # json|console, derived from env when unset

    # ------------------------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------------------------
    CACHE_MAX_ENTRIES: int = Field(default=1000, alias="TENANCY_CACHE_MAX_ENTRIES", gt=0)
    CACHE_DEFAULT_TTL_SECONDS: float = Field(default=300.0, alias="TENANCY_CACHE_DEFAULT_TTL_SECONDS", gt=0)
    CACHE_MAX_PATTERN_LENGTH: int = Field(default=256, alias="TENANCY_CACHE_MAX_PATTERN_LENGTH", gt=0)

    # ------------------------------------------------------------------------------------
    # Audit / Usage
    # ------------------------------------------------------------------------------------
    AUDIT_MAX_ENTRIES_PER_TENANT: int = Field(default=1000, alias="TENANCY_AUDIT_MAX_ENTRIES_PER_TENANT", gt=0)
    USAGE_OPERATION_CEILING: int = Field(default=1000, alias="TENANCY_USAGE_OPERATION_CEILING", gt=0)
    USAGE_AVG_RECORD_BYTES: int = Field(default=1000, alias="TENANCY_USAGE_AVG_RECORD_BYTES", gt=0)
    USAGE_RETENTION_DAYS: int = Field(default=30, alias="TENANCY_USAGE_RETENTION_DAYS", gt=0)

    # ------------------------------------------------------------------------------------
    # Rate limiting / Concurrency
    # ------------------------------------------------------------------------------------
    RATE_LIMIT_WINDOW_SECONDS: float = Field(default=60.0, alias="TENANCY_RATE_LIMIT_WINDOW_SECONDS", gt=0)
    LOCK_SHARDS: int = Field(default=16, alias="TENANCY_LOCK_SHARDS", gt=0)

    # ------------------------------------------------------------------------------------
    # Security
    # ------------------------------------------------------------------------------------
    DATA_ENCRYPTION_KEY: Optional[str] = Field(
        default=None,
        alias="TENANCY_DATA_ENCRYPTION_KEY",
        description="Base64 master key for per-tenant field encryption (never commit real keys)",
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR, CRITICAL")
        return level

    @field_validator("LOG_FORMAT")
    @classmethod
    def _validate_log_format(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if v not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return v

    # ------------------------------------------------------------------------------------
    # Helper properties
    # ------------------------------------------------------------------------------------
    @property
    def is_dev(self) -> bool:
        return self.ENVIRONMENT.lower() in {"dev", "development", "local"}

    @property
    def is_staging(self) -> bool:
        return self.ENVIRONMENT.lower() in {"stage", "staging"}

    @property
    def is_prod(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

    def safe_dict(self) -> dict:
        data = self.model_dump()
        data["DATA_ENCRYPTION_KEY"] = "<masked>" if self.DATA_ENCRYPTION_KEY else "<unset>"
        return data

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "populate_by_name": True,   # enable aliases
        "extra": "ignore",          # don't crash on unrelated env keys
    }


@lru_cache()
def get_settings() -> TenancySettings:
    return TenancySettings()
