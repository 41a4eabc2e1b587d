# src/shared/utils/tenant_ctxvars.py
from __future__ import annotations
from typing import TYPE_CHECKING, Optional
import contextvars
from contextlib import contextmanager

import structlog

if TYPE_CHECKING:
    from src.tenancy.domain.value_objects import TenantContext

# Context variable, bound for the duration of a middleware call

TENANT_CONTEXT_VAR = contextvars.ContextVar[Optional["TenantContext"]]("tenant_context", default=None)

def get_tenant_id() -> Optional[str]:
    ctx = TENANT_CONTEXT_VAR.get()
    return ctx.tenant_id if ctx is not None else None

# -------------------------------------------------------------------
# Context manager for temporary binding
# -------------------------------------------------------------------

@contextmanager
def bind_tenant_ctx(ctx: "TenantContext"):
    """
    Temporarily bind a tenant context into ctxvars (and structlog's log context)
    for the current request/task.
    Example:
        with bind_tenant_ctx(ctx):
            audit.log_activity(...)  # log lines carry tenant_id/user_id
    """
    token = TENANT_CONTEXT_VAR.set(ctx)
    log_tokens = structlog.contextvars.bind_contextvars(**ctx.to_log_context())
    try:
        yield ctx
    finally:
        structlog.contextvars.reset_contextvars(**log_tokens)
        TENANT_CONTEXT_VAR.reset(token)
