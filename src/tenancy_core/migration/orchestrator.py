"""Moves tenants between shared and dedicated deployment modes.

A tenant's current mode is never read from the registry: it is detected by
probing for the dedicated namespace and for the tenant database on the
shared server. Migrations do not copy data; the target database starts
from the template.
"""

import asyncio
from typing import Any

from tenancy_core.config import Config
from tenancy_core.exceptions import OperationCancelledError
from tenancy_core.migration.models import (
    BulkMigrationResult,
    DetectedMode,
    MigrationEligibility,
    MigrationResult,
)
from tenancy_core.observability import RequestContext, emit_counter, emit_timer, get_logger
from tenancy_core.protocols import ClusterClient, ForwardTarget, ProxyClient, TenantDatabaseProvisioner
from tenancy_core.provisioning.models import ProvisioningRequest
from tenancy_core.provisioning.orchestrator import ProvisioningOrchestrator
from tenancy_core.tenants.models import DeploymentMode, utcnow
from tenancy_core.tenants.store import TenantStore
from tenancy_core.utils.cancellation import CancellationToken

logger = get_logger(__name__)


class MigrationOrchestrator:
    """Runs single and bulk tenant migrations.

    Each step failure ends the migration without undoing completed steps;
    ``MigrationResult.steps`` is the record of how far it got.
    """

    def __init__(
        self,
        config: Config,
        cluster: ClusterClient,
        tenant_db: TenantDatabaseProvisioner,
        provisioning: ProvisioningOrchestrator,
        tenants: TenantStore,
        proxy: ProxyClient | None = None,
    ) -> None:
        self.config = config
        self.shared = config.shared_instance
        self.cluster = cluster
        self.tenant_db = tenant_db
        self.provisioning = provisioning
        self.tenants = tenants
        self.proxy = proxy

    @property
    def shared_target(self) -> ForwardTarget:
        return ForwardTarget(host=self.shared.forward_host, port=self.shared.forward_port)

    @property
    def dedicated_target(self) -> ForwardTarget:
        dedicated = self.config.dedicated_instance
        return ForwardTarget(host=dedicated.forward_host, port=dedicated.forward_port)

    async def check_eligibility(self, tenant_id: str) -> MigrationEligibility:
        """Probe both modes and classify the tenant."""
        has_namespace = await self.cluster.namespace_exists(self.provisioning.namespace_for(tenant_id))
        has_shared_db = await self.tenant_db.exists(tenant_id, self.shared.postgres_host, self.shared.postgres_port)
        eligibility = MigrationEligibility.detect(tenant_id, has_namespace, has_shared_db)
        logger.debug(
            "Migration eligibility checked",
            context={"tenant_id": tenant_id, **eligibility.to_dict()},
        )
        return eligibility

    async def get_status(self, tenant_id: str) -> dict[str, Any]:
        """Detected mode alongside what the registry records."""
        eligibility = await self.check_eligibility(tenant_id)
        tenant = await self.tenants.get(tenant_id)
        return {
            "tenant_id": tenant_id,
            "current_mode": eligibility.current_mode.value,
            "recorded_mode": tenant.deployment_mode.value if tenant else None,
            "eligibility": eligibility.to_dict(),
        }

    async def _repoint_proxy(self, tenant_id: str, target: ForwardTarget) -> None:
        if self.proxy is None:
            return
        await self.proxy.delete_tenant_host(tenant_id)
        await self.proxy.create_tenant_host(tenant_id, target)

    def _check(self, cancellation: CancellationToken | None) -> None:
        if cancellation is not None:
            cancellation.raise_if_cancelled()

    def _finish(self, result: MigrationResult, success: bool, error: str | None = None) -> MigrationResult:
        result.complete(success, error)
        outcome = "completed" if success else "failed"
        labels = {"target_mode": result.target_mode}
        emit_counter(f"migration.{outcome}", labels)
        if result.duration_seconds is not None:
            emit_timer("migration.duration", result.duration_seconds * 1000, labels)
        if success:
            logger.info("Migration completed", context={"steps": result.steps})
        else:
            logger.error("Migration failed", context={"steps": result.steps, "error_message": error})
        return result

    async def migrate_to_shared(
        self,
        tenant_id: str,
        cancellation: CancellationToken | None = None,
    ) -> MigrationResult:
        """Move a dedicated tenant onto the shared deployment.

        The token is checked before each step; steps already done stay done.
        """
        result = MigrationResult(
            tenant_id=tenant_id,
            source_mode=DetectedMode.DEDICATED.value,
            target_mode=DetectedMode.SHARED.value,
        )
        async with RequestContext(tenant_id=tenant_id, operation="migrate_to_shared"):
            try:
                eligibility = await self.check_eligibility(tenant_id)
                if not eligibility.can_migrate:
                    return self._finish(result, False, eligibility.reason)
                if eligibility.current_mode != DetectedMode.DEDICATED:
                    return self._finish(result, False, f"Tenant {tenant_id} is not in dedicated mode")
                result.warnings.extend(eligibility.warnings)
                result.steps.append("Verified migration eligibility")

                self._check(cancellation)
                result.steps.append("Creating database on shared PostgreSQL cluster")
                tenant = await self.tenants.get(tenant_id)
                connection_string = await self.tenant_db.provision(
                    tenant_id,
                    self.shared.postgres_host,
                    self.shared.postgres_port,
                    owner_email=tenant.owner_email if tenant else None,
                    owner_name=tenant.owner_name if tenant else None,
                )

                self._check(cancellation)
                result.steps.append("Updating proxy host to point to shared instance")
                await self._repoint_proxy(tenant_id, self.shared_target)

                self._check(cancellation)
                result.steps.append("Deleting dedicated namespace")
                namespace = self.provisioning.namespace_for(tenant_id)
                if not await self.cluster.delete_namespace(namespace):
                    logger.warning("Dedicated namespace was already gone", context={"namespace": namespace})
                    result.warnings.append(f"Namespace {namespace} could not be deleted")

                if tenant is not None:
                    tenant.set_deployment(DeploymentMode.SHARED, self.shared.namespace, connection_string)
                    await self.tenants.update(tenant)

                result.steps.append("Migration completed successfully")
                return self._finish(result, True)
            except OperationCancelledError as e:
                result.steps.append("Cancelled")
                return self._finish(result, False, str(e))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Migration to shared raised", error=e)
                return self._finish(result, False, str(e))

    async def migrate_to_dedicated(
        self,
        tenant_id: str,
        target_tier: str,
        cancellation: CancellationToken | None = None,
    ) -> MigrationResult:
        """Give a shared tenant its own namespace on ``target_tier``."""
        result = MigrationResult(
            tenant_id=tenant_id,
            source_mode=DetectedMode.SHARED.value,
            target_mode=DetectedMode.DEDICATED.value,
        )
        async with RequestContext(tenant_id=tenant_id, operation="migrate_to_dedicated"):
            try:
                eligibility = await self.check_eligibility(tenant_id)
                if not eligibility.can_migrate:
                    return self._finish(result, False, eligibility.reason)
                if eligibility.current_mode != DetectedMode.SHARED:
                    return self._finish(result, False, f"Tenant {tenant_id} does not exist on shared instance")
                result.steps.append("Verified tenant exists on shared instance")

                result.steps.append("Provisioning dedicated instance")
                tenant = await self.tenants.get(tenant_id)
                request = ProvisioningRequest(
                    company_name=tenant.company_name if tenant else tenant_id,
                    owner_email=tenant.owner_email if tenant else "",
                    tier=target_tier,
                    tenant_id=tenant_id,
                    custom_domain=tenant.custom_domain if tenant and tenant.domain_verified else None,
                )
                provisioned = await self.provisioning.provision(request, cancellation)
                if not provisioned.success:
                    return self._finish(
                        result,
                        False,
                        f"Failed to provision dedicated instance: {provisioned.error_message}",
                    )
                result.steps.append("Dedicated instance provisioned")
                result.steps.append("Note: Data migration requires manual intervention")

                result.steps.append("Updating proxy host to point to dedicated instance")
                await self._repoint_proxy(tenant_id, self.dedicated_target)

                result.steps.append("Cleaning up shared instance database")
                await self.tenant_db.delete(tenant_id, self.shared.postgres_host, self.shared.postgres_port)

                result.steps.append("Migration completed successfully")
                return self._finish(result, True)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Migration to dedicated raised", error=e)
                return self._finish(result, False, str(e))

    async def bulk_migrate_to_shared(
        self,
        tenant_ids: list[str],
        cancellation: CancellationToken | None = None,
    ) -> BulkMigrationResult:
        """Migrate tenants one at a time, continuing past failures.

        Cancellation is checked between tenants and passed into each
        migration, which stops before its next step. Tenants not reached are
        counted as skipped.
        """
        bulk = BulkMigrationResult(total_requested=len(tenant_ids))
        logger.info("Starting bulk migration to shared", context={"count": len(tenant_ids)})

        for index, tenant_id in enumerate(tenant_ids):
            if cancellation is not None and cancellation.is_cancelled:
                logger.warning("Bulk migration cancelled", context={"next_tenant_id": tenant_id})
                bulk.cancelled = True
                bulk.skipped = len(tenant_ids) - index
                break
            try:
                bulk.add(await self.migrate_to_shared(tenant_id, cancellation))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Bulk migration entry raised", context={"tenant_id": tenant_id}, error=e)
                failed = MigrationResult(tenant_id=tenant_id, target_mode=DetectedMode.SHARED.value)
                bulk.add(failed.complete(False, str(e)))

        bulk.completed_at = utcnow()
        logger.info(
            "Bulk migration completed",
            context={"successful": bulk.successful, "failed": bulk.failed, "skipped": bulk.skipped},
        )
        emit_counter("migration.bulk_completed", {"successful": bulk.successful, "failed": bulk.failed})
        return bulk
