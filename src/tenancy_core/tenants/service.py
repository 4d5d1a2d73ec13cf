"""Tenant lifecycle operations beyond provisioning."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from tenancy_core.config import Config
from tenancy_core.exceptions import TenantNotFoundError
from tenancy_core.observability import RequestContext, emit_counter, get_logger
from tenancy_core.protocols import ClusterClient, PodStatus, ProxyClient, TenantDatabaseProvisioner
from tenancy_core.provisioning.readiness import DATABASE_SELECTOR
from tenancy_core.provisioning.tiers import DEFAULT_TIER_LIMITS
from tenancy_core.tenants.models import DeploymentMode, Tenant, TenantStatus, format_timestamp, utcnow
from tenancy_core.tenants.store import TenantStore

if TYPE_CHECKING:
    from tenancy_core.domains.store import DomainVerificationStore
    from tenancy_core.provisioning.orchestrator import ProvisioningOrchestrator

logger = get_logger(__name__)

SUSPENSION_KEYS = ("suspension_reason", "suspended_at")


@dataclass
class TenantHealth:
    """Observed state of a tenant's namespace."""

    tenant_id: str
    namespace: str
    status: str  # NotFound | Healthy | Degraded
    pods: list[PodStatus] = field(default_factory=list)
    database_pods: list[PodStatus] = field(default_factory=list)
    tenant_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tenant_id": self.tenant_id,
            "namespace": self.namespace,
            "status": self.status,
            "pods": [pod.to_dict() for pod in self.pods],
            "database_pods": [pod.to_dict() for pod in self.database_pods],
            "tenant_url": self.tenant_url,
        }


@dataclass
class TenantDeletionResult:
    """What a full tenant deletion managed to remove."""

    tenant_id: str
    kubernetes_deleted: bool = False
    database_deleted: bool = False
    tenant_not_in_database: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "tenant_id": self.tenant_id,
            "success": self.success,
            "kubernetes_deleted": self.kubernetes_deleted,
            "database_deleted": self.database_deleted,
            "tenant_not_in_database": self.tenant_not_in_database,
            "errors": self.errors,
        }


class TenantLifecycleService:
    """Suspend, resume, inspect and delete tenants.

    Handles:
    - Scaling a dedicated deployment to zero and back
    - Reporting pod health for a tenant namespace
    - Deleting every trace of a tenant (namespace, shared database, routing, record)
    - Cleaning up demo tenants whose trial has ended
    """

    def __init__(
        self,
        config: Config,
        tenants: TenantStore,
        cluster: ClusterClient,
        tenant_db: TenantDatabaseProvisioner,
        provisioning: "ProvisioningOrchestrator",
        proxy: ProxyClient | None = None,
        verifications: "DomainVerificationStore | None" = None,
    ) -> None:
        self.config = config
        self.tenants = tenants
        self.cluster = cluster
        self.tenant_db = tenant_db
        self.provisioning = provisioning
        self.proxy = proxy
        self.verifications = verifications

    async def get(self, tenant_id: str) -> Tenant:
        """Get a tenant.

        Raises:
            TenantNotFoundError: If no record exists
        """
        tenant = await self.tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(f"Tenant not found: {tenant_id}")
        return tenant

    async def list_tenants(
        self,
        status: TenantStatus | None = None,
        tier: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Tenant]:
        return await self.tenants.list_tenants(status=status, tier=tier, limit=limit, offset=offset)

    def _replicas(self, tier: str) -> tuple[int, int]:
        limits = (self.config.provisioning.tiers or DEFAULT_TIER_LIMITS).get(tier)
        if limits is None:
            return 1, 1
        return limits.api_replicas, limits.web_replicas

    async def suspend(self, tenant_id: str, reason: str = "Suspended by administrator") -> Tenant:
        """Scale a tenant's workloads to zero and mark it suspended.

        Shared-mode tenants run on a multiplexed deployment, so only their
        status changes.
        """
        async with RequestContext(tenant_id=tenant_id, operation="suspend"):
            tenant = await self.get(tenant_id)
            if tenant.deployment_mode == DeploymentMode.DEDICATED and tenant.namespace:
                for name in await self.cluster.list_deployments(tenant.namespace):
                    await self.cluster.scale_deployment(tenant.namespace, name, 0)

            tenant.status = TenantStatus.SUSPENDED
            tenant.metadata["suspension_reason"] = reason
            tenant.metadata["suspended_at"] = format_timestamp(utcnow())
            await self.tenants.update(tenant)

            logger.info("Tenant suspended", context={"reason": reason})
            emit_counter("tenant.suspended")
            return tenant

    async def resume(self, tenant_id: str) -> Tenant:
        """Scale api and web back to the tier's replica counts and mark the tenant active."""
        async with RequestContext(tenant_id=tenant_id, operation="resume"):
            tenant = await self.get(tenant_id)
            if tenant.deployment_mode == DeploymentMode.DEDICATED and tenant.namespace:
                api_replicas, web_replicas = self._replicas(tenant.tier)
                for name in await self.cluster.list_deployments(tenant.namespace):
                    if name.endswith("-api"):
                        await self.cluster.scale_deployment(tenant.namespace, name, api_replicas)
                    elif name.endswith("-web"):
                        await self.cluster.scale_deployment(tenant.namespace, name, web_replicas)

            tenant.status = TenantStatus.ACTIVE
            for key in SUSPENSION_KEYS:
                tenant.metadata.pop(key, None)
            await self.tenants.update(tenant)

            logger.info("Tenant resumed")
            emit_counter("tenant.resumed")
            return tenant

    async def get_status(self, tenant_id: str) -> TenantHealth:
        """Report pod health in the tenant's dedicated namespace."""
        namespace = self.provisioning.namespace_for(tenant_id)
        health = TenantHealth(tenant_id=tenant_id, namespace=namespace, status="NotFound")
        if not await self.cluster.namespace_exists(namespace):
            return health

        health.pods = await self.cluster.list_pods(namespace)
        health.database_pods = await self.cluster.list_pods(namespace, DATABASE_SELECTOR)
        health.status = "Healthy" if health.pods and all(pod.is_ready for pod in health.pods) else "Degraded"

        for ingress in await self.cluster.list_ingresses(namespace):
            if ingress.hosts:
                health.tenant_url = f"https://{ingress.hosts[0]}"
                break
        return health

    async def delete_tenant(self, tenant_id: str) -> TenantDeletionResult:
        """Remove the dedicated deployment, the shared database, routing and the record.

        Each part is attempted even if an earlier one failed; failures are
        collected in ``errors``.
        """
        result = TenantDeletionResult(tenant_id=tenant_id)
        shared = self.config.shared_instance

        async with RequestContext(tenant_id=tenant_id, operation="delete"):
            tenant = await self.tenants.get(tenant_id)
            result.tenant_not_in_database = tenant is None

            try:
                namespace = self.provisioning.namespace_for(tenant_id)
                if await self.cluster.namespace_exists(namespace):
                    deprovisioned = await self.provisioning.deprovision(tenant_id)
                    result.kubernetes_deleted = deprovisioned.success
                    if not deprovisioned.success:
                        result.errors.append(f"Kubernetes: {deprovisioned.error_message}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                result.errors.append(f"Kubernetes: {e}")

            try:
                if await self.tenant_db.exists(tenant_id, shared.postgres_host, shared.postgres_port):
                    await self.tenant_db.delete(tenant_id, shared.postgres_host, shared.postgres_port)
                    result.database_deleted = True
            except asyncio.CancelledError:
                raise
            except Exception as e:
                result.errors.append(f"Database: {e}")

            if self.proxy is not None:
                try:
                    await self.proxy.delete_tenant_host(tenant_id)
                    if tenant is not None and tenant.custom_domain:
                        await self.proxy.delete_custom_domain_host(tenant.custom_domain)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    result.errors.append(f"Proxy: {e}")

            async with self.tenants.db.transaction():
                if self.verifications is not None:
                    await self.verifications.delete_for_tenant(tenant_id)
                if tenant is not None:
                    await self.tenants.delete(tenant_id)

            if result.errors:
                logger.warning("Tenant deletion incomplete", context={"errors": result.errors})
            else:
                logger.info("Tenant deleted", context=result.to_dict())
            emit_counter("tenant.deleted", {"success": result.success})
            return result

    async def cleanup_expired_demos(self, now: datetime | None = None) -> list[TenantDeletionResult]:
        """Delete every demo tenant whose trial has ended."""
        expired = await self.tenants.list_expired_demos(now)
        results = []
        for tenant in expired:
            logger.info("Deleting expired demo tenant", context={"tenant_id": tenant.tenant_id})
            results.append(await self.delete_tenant(tenant.tenant_id))
        return results
