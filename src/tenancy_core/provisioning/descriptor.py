"""Renders tenant chart values from a request and its resource envelope."""

from typing import Any

import yaml

from tenancy_core.config import ProvisioningConfig
from tenancy_core.provisioning.models import ProvisioningRequest
from tenancy_core.provisioning.tiers import ResourceEnvelope

DATABASE_NAME = "mechanicbuddy"
DATABASE_USER = "mechanicbuddy"
MIGRATION_TIMEOUT_SECONDS = 300


def _resources(cpu_request: str, memory_request: str, cpu_limit: str, memory_limit: str) -> dict[str, Any]:
    return {
        "requests": {"cpu": cpu_request, "memory": memory_request},
        "limits": {"cpu": cpu_limit, "memory": memory_limit},
    }


def default_domain(tenant_id: str, base_domain: str) -> str:
    """Subdomain every tenant gets under the platform domain."""
    return f"{tenant_id}.{base_domain}"


def build_values(
    request: ProvisioningRequest,
    tenant_id: str,
    resources: ResourceEnvelope,
    settings: ProvisioningConfig,
) -> dict[str, Any]:
    """Build the chart values document.

    Args:
        request: The provisioning request
        tenant_id: The resolved tenant id
        resources: Resolved resource envelope
        settings: Provisioning configuration (domains, registry)

    Returns:
        Nested values mapping, ready for YAML rendering
    """
    registry = settings.registry
    is_demo = resources.tier == "demo"

    return {
        "tenant": {
            "id": tenant_id,
            "name": request.company_name,
            "tier": resources.tier,
            "ownerEmail": request.owner_email,
        },
        "domains": {
            "baseDomain": settings.base_domain,
            "default": default_domain(tenant_id, settings.base_domain),
            "custom": [request.custom_domain] if request.custom_domain else [],
            "clusterIssuer": settings.cluster_issuer,
        },
        "demo": {
            "enabled": is_demo,
            "expirationDays": resources.expiration_days if is_demo else None,
            "populateSampleData": request.populate_sample_data,
        },
        "postgresql": {
            "instances": resources.postgres_instances,
            "database": DATABASE_NAME,
            "username": DATABASE_USER,
            "storage": {
                "size": resources.postgres_storage_size,
                "storageClass": resources.storage_class,
            },
            "resources": _resources(
                resources.postgres_cpu_request,
                resources.postgres_memory_request,
                resources.postgres_cpu_limit,
                resources.postgres_memory_limit,
            ),
            "backup": {"enabled": resources.backup_enabled},
        },
        "api": {
            "replicas": resources.api_replicas,
            "image": {
                "repository": registry.api_repository,
                "tag": registry.default_tag,
                "pullPolicy": registry.pull_policy,
            },
            "resources": _resources(
                resources.api_cpu_request,
                resources.api_memory_request,
                resources.api_cpu_limit,
                resources.api_memory_limit,
            ),
            "extraEnv": [{"name": name, "value": value} for name, value in request.extra_env.items()],
        },
        "web": {
            "replicas": resources.web_replicas,
            "image": {
                "repository": registry.web_repository,
                "tag": registry.default_tag,
                "pullPolicy": registry.pull_policy,
            },
            "resources": _resources(
                resources.web_cpu_request,
                resources.web_memory_request,
                resources.web_cpu_limit,
                resources.web_memory_limit,
            ),
        },
        "migrations": {
            "enabled": True,
            "image": {
                "repository": registry.migrations_repository,
                "tag": registry.default_tag,
                "pullPolicy": registry.pull_policy,
            },
            "timeout": settings.migration_timeout_seconds or MIGRATION_TIMEOUT_SECONDS,
        },
        "billing": {
            "stripeCustomerId": request.stripe_customer_id,
            "subscriptionId": request.stripe_subscription_id,
            "mechanicLimit": resources.mechanic_limit,
        },
    }


def render_values(values: dict[str, Any]) -> str:
    """Render values as YAML, preserving key order."""
    return yaml.safe_dump(values, sort_keys=False, default_flow_style=False)


def release_name(tenant_id: str) -> str:
    """Chart release name of a tenant deployment."""
    return f"tenant-{tenant_id}"


def dedicated_connection_string(tenant_id: str, namespace: str) -> str:
    """In-cluster connection string of a dedicated tenant's database service."""
    return (
        f"postgresql://{DATABASE_USER}@{release_name(tenant_id)}-postgres-rw."
        f"{namespace}.svc.cluster.local:5432/{DATABASE_NAME}"
    )
