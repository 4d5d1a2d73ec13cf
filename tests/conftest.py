"""Pytest configuration and fixtures."""

import pytest

from tenancy_core.backends.charts.memory import MemoryChartDeployer
from tenancy_core.backends.cluster.memory import MemoryClusterClient
from tenancy_core.backends.database.sqlite import SQLiteDatabase
from tenancy_core.backends.dns.memory import MemoryDnsRegistrar
from tenancy_core.backends.proxy.memory import MemoryProxyClient
from tenancy_core.backends.resolver.memory import MemoryResolver
from tenancy_core.backends.tenant_db.memory import MemoryTenantDatabaseProvisioner
from tenancy_core.config import Config
from tenancy_core.domains.service import DomainService
from tenancy_core.domains.store import DomainVerificationStore
from tenancy_core.migration.orchestrator import MigrationOrchestrator
from tenancy_core.provisioning.orchestrator import ProvisioningOrchestrator
from tenancy_core.provisioning.readiness import ReadinessPoller
from tenancy_core.tenants.models import DeploymentMode, Tenant
from tenancy_core.tenants.service import TenantLifecycleService
from tenancy_core.tenants.store import TenantStore


class FakeClock:
    """Simulated monotonic clock; sleeping advances it instantly."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def sample_config_dict():
    """Sample configuration dictionary for testing."""
    return {
        "provisioning": {
            "base_domain": "mechanicbuddy.app",
            "poll_interval_seconds": 5,
        },
        "shared_instance": {
            "postgres_host": "postgres-shared",
            "postgres_port": 5432,
        },
        "dedicated_instance": {
            "forward_host": "192.168.1.100",
            "forward_port": 31840,
        },
        "storage": {
            "database": {"backend": "sqlite", "path": ":memory:"},
        },
        "backends": {
            "cluster": {"backend": "memory"},
            "charts": {"backend": "memory"},
            "tenant_db": {"backend": "memory"},
            "proxy": {"backend": "memory"},
            "dns": {"backend": "memory"},
            "resolver": {"backend": "memory"},
        },
    }


@pytest.fixture
def config(sample_config_dict) -> Config:
    return Config.from_dict(sample_config_dict)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poller(clock: FakeClock) -> ReadinessPoller:
    """Readiness poller driven by the simulated clock."""
    return ReadinessPoller(interval=5, clock=clock.time, sleep=clock.sleep)


@pytest.fixture
def cluster() -> MemoryClusterClient:
    return MemoryClusterClient()


@pytest.fixture
def charts(cluster: MemoryClusterClient) -> MemoryChartDeployer:
    """Chart deployer that materializes ready workloads into the memory cluster."""
    return MemoryChartDeployer(cluster=cluster)


@pytest.fixture
def tenant_db(config: Config) -> MemoryTenantDatabaseProvisioner:
    return MemoryTenantDatabaseProvisioner(
        host=config.shared_instance.postgres_host,
        port=config.shared_instance.postgres_port,
    )


@pytest.fixture
def proxy(config: Config) -> MemoryProxyClient:
    return MemoryProxyClient(base_domain=config.provisioning.base_domain)


@pytest.fixture
def dns(config: Config) -> MemoryDnsRegistrar:
    return MemoryDnsRegistrar(base_domain=config.provisioning.base_domain)


@pytest.fixture
def resolver() -> MemoryResolver:
    return MemoryResolver()


@pytest.fixture
async def database():
    """Create an in-memory SQLite database."""
    db = SQLiteDatabase(path=":memory:")
    yield db
    await db.close()


@pytest.fixture
async def tenant_store(database: SQLiteDatabase) -> TenantStore:
    store = TenantStore(database)
    await store.ensure_schema()
    return store


@pytest.fixture
async def verification_store(database: SQLiteDatabase) -> DomainVerificationStore:
    store = DomainVerificationStore(database)
    await store.ensure_schema()
    return store


@pytest.fixture
def orchestrator(config, cluster, charts, tenant_store, proxy, dns, poller) -> ProvisioningOrchestrator:
    return ProvisioningOrchestrator(
        config,
        cluster,
        charts,
        tenant_store,
        proxy=proxy,
        dns=dns,
        poller=poller,
    )


@pytest.fixture
def lifecycle(
    config, tenant_store, verification_store, cluster, tenant_db, orchestrator, proxy
) -> TenantLifecycleService:
    return TenantLifecycleService(
        config, tenant_store, cluster, tenant_db, orchestrator, proxy=proxy, verifications=verification_store
    )


@pytest.fixture
def domain_service(config, tenant_store, verification_store, resolver, cluster, proxy) -> DomainService:
    return DomainService(config, tenant_store, verification_store, resolver, cluster, proxy=proxy)


@pytest.fixture
def migration(config, cluster, tenant_db, orchestrator, tenant_store, proxy) -> MigrationOrchestrator:
    return MigrationOrchestrator(config, cluster, tenant_db, orchestrator, tenant_store, proxy=proxy)


@pytest.fixture
def make_tenant(tenant_store: TenantStore):
    """Factory inserting a tenant record."""

    async def make(tenant_id: str = "acme", **kwargs) -> Tenant:
        kwargs.setdefault("company_name", "Acme Auto")
        kwargs.setdefault("owner_email", "owner@acme.example")
        if "namespace" not in kwargs and kwargs.get("deployment_mode", DeploymentMode.DEDICATED) == DeploymentMode.DEDICATED:
            kwargs["namespace"] = f"tenant-{tenant_id}"
            kwargs["db_connection_string"] = f"postgresql://mechanicbuddy@tenant-{tenant_id}-postgres-rw/mechanicbuddy"
        return await tenant_store.create(Tenant(tenant_id=tenant_id, **kwargs))

    return make
