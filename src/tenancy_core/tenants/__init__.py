"""Tenant records and lifecycle."""

from tenancy_core.tenants.models import DeploymentMode, Tenant, TenantStatus
from tenancy_core.tenants.service import TenantDeletionResult, TenantHealth, TenantLifecycleService
from tenancy_core.tenants.store import TenantStore

__all__ = [
    "DeploymentMode",
    "Tenant",
    "TenantDeletionResult",
    "TenantHealth",
    "TenantLifecycleService",
    "TenantStatus",
    "TenantStore",
]
