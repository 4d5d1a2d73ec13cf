"""Tenant provisioning: tiers, chart values, readiness and the pipeline."""

from tenancy_core.provisioning.descriptor import build_values, default_domain, render_values
from tenancy_core.provisioning.identifiers import generate_tenant_id, slugify
from tenancy_core.provisioning.models import (
    ProvisioningRequest,
    ProvisioningResult,
    StepLevel,
    StepLogEntry,
)
from tenancy_core.provisioning.orchestrator import ProvisioningOrchestrator
from tenancy_core.provisioning.readiness import ReadinessPoller, pods_ready
from tenancy_core.provisioning.tiers import (
    DEFAULT_TIER_LIMITS,
    ResourceEnvelope,
    ResourceOverrides,
    calculate_resources,
)

__all__ = [
    "DEFAULT_TIER_LIMITS",
    "ProvisioningOrchestrator",
    "ProvisioningRequest",
    "ProvisioningResult",
    "ReadinessPoller",
    "ResourceEnvelope",
    "ResourceOverrides",
    "StepLevel",
    "StepLogEntry",
    "build_values",
    "calculate_resources",
    "default_domain",
    "generate_tenant_id",
    "pods_ready",
    "render_values",
    "slugify",
]
