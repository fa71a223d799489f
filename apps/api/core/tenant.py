"""
Tenant resolution.

Every yoga plan route is tenant-scoped. The tenant is resolved upstream
(studio site / app instance) and arrives as the X-Tenant-ID header; it is
never read from a request body.

The request middleware also records the header in `current_tenant` so log
lines emitted while serving the request carry the tenant.
"""
from contextvars import ContextVar
from typing import Optional

from fastapi import Header

from core.exceptions import BadRequestError

current_tenant: ContextVar[Optional[str]] = ContextVar("current_tenant", default=None)


def get_tenant_id(x_tenant_id: Optional[str] = Header(default=None)) -> str:
    """FastAPI dependency returning the caller's tenant identifier."""
    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise BadRequestError("X-Tenant-ID header is required", error_code="TENANT_REQUIRED")
    return tenant_id
