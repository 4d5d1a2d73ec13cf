"""Tenancy Core - control plane for per-tenant deployments."""

from tenancy_core.config import Config
from tenancy_core.control_plane import ControlPlane
from tenancy_core.domains import DomainService, DomainVerification, VerificationMethod, VerificationResult
from tenancy_core.migration import BulkMigrationResult, MigrationEligibility, MigrationOrchestrator, MigrationResult
from tenancy_core.observability import (
    LogLevel,
    RequestContext,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
)
from tenancy_core.provisioning import (
    ProvisioningOrchestrator,
    ProvisioningRequest,
    ProvisioningResult,
    ReadinessPoller,
    calculate_resources,
    generate_tenant_id,
)
from tenancy_core.tenants import Tenant, TenantLifecycleService, TenantStatus
from tenancy_core.utils import CancellationToken

__version__ = "0.1.0"
__all__ = [
    # Core
    "CancellationToken",
    "Config",
    "ControlPlane",
    # Provisioning
    "ProvisioningOrchestrator",
    "ProvisioningRequest",
    "ProvisioningResult",
    "ReadinessPoller",
    "calculate_resources",
    "generate_tenant_id",
    # Tenants
    "Tenant",
    "TenantLifecycleService",
    "TenantStatus",
    # Domains
    "DomainService",
    "DomainVerification",
    "VerificationMethod",
    "VerificationResult",
    # Migration
    "BulkMigrationResult",
    "MigrationEligibility",
    "MigrationOrchestrator",
    "MigrationResult",
    # Observability
    "LogLevel",
    "RequestContext",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
]
