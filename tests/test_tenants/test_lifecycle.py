"""Tests for suspend, resume, status and deletion."""

from datetime import timedelta

import pytest

from tenancy_core.domains.models import DomainVerification, VerificationMethod
from tenancy_core.exceptions import TenantNotFoundError
from tenancy_core.protocols import PodStatus
from tenancy_core.provisioning.models import ProvisioningRequest
from tenancy_core.tenants.models import DeploymentMode, TenantStatus, utcnow


@pytest.fixture
async def growth_tenant(orchestrator):
    """A provisioned dedicated tenant on the growth tier."""
    result = await orchestrator.provision(ProvisioningRequest(company_name="Acme", tenant_id="acme", tier="growth"))
    assert result.success
    return result


class TestSuspendResume:
    """Tests for suspend and resume."""

    @pytest.mark.asyncio
    async def test_suspend_scales_to_zero(self, lifecycle, growth_tenant, cluster, tenant_store) -> None:
        tenant = await lifecycle.suspend("acme", reason="Payment failed")

        assert tenant.status == TenantStatus.SUSPENDED
        assert cluster.deployments["tenant-acme"] == {"tenant-acme-api": 0, "tenant-acme-web": 0}

        stored = await tenant_store.get("acme")
        assert stored.status == TenantStatus.SUSPENDED
        assert stored.metadata["suspension_reason"] == "Payment failed"
        assert "suspended_at" in stored.metadata

    @pytest.mark.asyncio
    async def test_resume_restores_tier_replicas(self, lifecycle, growth_tenant, cluster, tenant_store) -> None:
        """Resume scales api and web to the tier's counts and clears suspension metadata."""
        await lifecycle.suspend("acme")

        tenant = await lifecycle.resume("acme")

        assert tenant.status == TenantStatus.ACTIVE
        assert cluster.deployments["tenant-acme"] == {"tenant-acme-api": 2, "tenant-acme-web": 2}
        stored = await tenant_store.get("acme")
        assert "suspension_reason" not in stored.metadata
        assert "suspended_at" not in stored.metadata

    @pytest.mark.asyncio
    async def test_shared_tenant_only_changes_status(self, lifecycle, make_tenant, cluster) -> None:
        await make_tenant(
            "budget",
            deployment_mode=DeploymentMode.SHARED,
            namespace="mechanicbuddy-free-tier",
            db_connection_string="postgresql://postgres-shared/tenant_budget",
        )

        tenant = await lifecycle.suspend("budget")

        assert tenant.status == TenantStatus.SUSPENDED
        assert [call for call in cluster.calls if call[0] == "scale_deployment"] == []

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, lifecycle) -> None:
        with pytest.raises(TenantNotFoundError):
            await lifecycle.suspend("ghost")
        with pytest.raises(TenantNotFoundError):
            await lifecycle.resume("ghost")


class TestGetStatus:
    """Tests for namespace health reporting."""

    @pytest.mark.asyncio
    async def test_not_found(self, lifecycle) -> None:
        health = await lifecycle.get_status("ghost")

        assert health.status == "NotFound"
        assert health.namespace == "tenant-ghost"
        assert health.pods == []

    @pytest.mark.asyncio
    async def test_healthy(self, lifecycle, growth_tenant) -> None:
        health = await lifecycle.get_status("acme")

        assert health.status == "Healthy"
        assert len(health.pods) == 5
        assert len(health.database_pods) == 1
        assert health.tenant_url == "https://acme.mechanicbuddy.app"

    @pytest.mark.asyncio
    async def test_degraded(self, lifecycle, growth_tenant, cluster) -> None:
        """One crashing pod degrades the tenant."""
        cluster.add_pod("tenant-acme", PodStatus(
            name="tenant-acme-api-9", phase="CrashLoopBackOff", ready_containers=0, total_containers=1, restarts=7,
        ))

        health = await lifecycle.get_status("acme")

        assert health.status == "Degraded"
        assert health.to_dict()["pods"][-1] == {
            "name": "tenant-acme-api-9",
            "phase": "CrashLoopBackOff",
            "ready": "0/1",
            "is_ready": False,
            "restarts": 7,
        }

    @pytest.mark.asyncio
    async def test_empty_namespace_is_degraded(self, lifecycle, cluster) -> None:
        await cluster.create_namespace("tenant-acme")
        assert (await lifecycle.get_status("acme")).status == "Degraded"


class TestDeleteTenant:
    """Tests for full tenant deletion."""

    @pytest.mark.asyncio
    async def test_dedicated(self, lifecycle, growth_tenant, cluster, proxy, tenant_store) -> None:
        result = await lifecycle.delete_tenant("acme")

        assert result.success is True
        assert result.kubernetes_deleted is True
        assert result.database_deleted is False
        assert result.tenant_not_in_database is False
        assert "tenant-acme" not in cluster.namespaces
        assert "acme.mechanicbuddy.app" not in proxy.hosts
        assert await tenant_store.get("acme") is None

    @pytest.mark.asyncio
    async def test_shared_database(self, lifecycle, make_tenant, tenant_db, proxy) -> None:
        """A shared tenant's database and custom domain host are removed."""
        connection_string = await tenant_db.provision("budget", "postgres-shared", 5432)
        await make_tenant(
            "budget",
            deployment_mode=DeploymentMode.SHARED,
            namespace="mechanicbuddy-free-tier",
            db_connection_string=connection_string,
            custom_domain="shop.budget.example",
        )
        await proxy.create_custom_domain_host("budget", "shop.budget.example")

        result = await lifecycle.delete_tenant("budget")

        assert result.success is True
        assert result.kubernetes_deleted is False
        assert result.database_deleted is True
        assert tenant_db.databases == {}
        assert "shop.budget.example" not in proxy.hosts

    @pytest.mark.asyncio
    async def test_releases_domains(self, lifecycle, make_tenant, verification_store) -> None:
        """Verification records go with the tenant so the domains can be claimed again."""
        await make_tenant("acme")
        await make_tenant("globex")
        for tenant_id, domain in [("acme", "shop.acme.example"), ("globex", "shop.globex.example")]:
            record = DomainVerification.issue(tenant_id, domain, VerificationMethod.DNS, "t" * 32)
            record.is_verified = True
            await verification_store.create(record)

        await lifecycle.delete_tenant("acme")

        assert await verification_store.get_by_domain("shop.acme.example") is None
        assert await verification_store.get_by_domain("shop.globex.example") is not None

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, lifecycle) -> None:
        """Deleting an unknown tenant succeeds and says so."""
        result = await lifecycle.delete_tenant("ghost")

        assert result.success is True
        assert result.tenant_not_in_database is True
        assert result.kubernetes_deleted is False
        assert result.database_deleted is False

    @pytest.mark.asyncio
    async def test_collects_errors(self, lifecycle, make_tenant, tenant_db, tenant_store) -> None:
        """A failing part is recorded and the remaining parts still run."""
        await make_tenant("acme")

        async def broken(*args, **kwargs):
            raise ConnectionError("connection refused")

        tenant_db.exists = broken

        result = await lifecycle.delete_tenant("acme")

        assert result.success is False
        assert result.errors == ["Database: connection refused"]
        assert await tenant_store.get("acme") is None


class TestCleanupExpiredDemos:
    """Tests for demo expiry cleanup."""

    @pytest.mark.asyncio
    async def test_deletes_only_expired_demos(self, lifecycle, orchestrator, tenant_store) -> None:
        demo = await orchestrator.provision(ProvisioningRequest(company_name="Trial Co", tier="demo"))
        await orchestrator.provision(ProvisioningRequest(company_name="Paid Co", tenant_id="paid", tier="growth"))

        assert await lifecycle.cleanup_expired_demos() == []

        results = await lifecycle.cleanup_expired_demos(now=utcnow() + timedelta(days=8))

        assert [r.tenant_id for r in results] == [demo.tenant_id]
        assert results[0].kubernetes_deleted is True
        assert await tenant_store.get(demo.tenant_id) is None
        assert await tenant_store.get("paid") is not None
