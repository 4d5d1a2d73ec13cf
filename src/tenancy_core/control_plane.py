"""Composition root wiring configuration, backends and services."""

import asyncio
from pathlib import Path
from typing import Any

from tenancy_core.config import Config
from tenancy_core.domains.service import DomainService
from tenancy_core.domains.store import DomainVerificationStore
from tenancy_core.migration.orchestrator import MigrationOrchestrator
from tenancy_core.observability import Timer, configure_logging, emit_timer, get_logger
from tenancy_core.plugins import (
    create_chart_deployer,
    create_cluster_client,
    create_database,
    create_dns_registrar,
    create_proxy_client,
    create_resolver,
    create_tenant_db_provisioner,
)
from tenancy_core.protocols import (
    ChartDeployer,
    ClusterClient,
    Database,
    DnsRegistrar,
    ProxyClient,
    Resolver,
    TenantDatabaseProvisioner,
)
from tenancy_core.provisioning.orchestrator import ProvisioningOrchestrator
from tenancy_core.provisioning.readiness import ReadinessPoller
from tenancy_core.tenants.service import TenantLifecycleService
from tenancy_core.tenants.store import TenantStore

logger = get_logger(__name__)

NOT_INITIALIZED = "Control plane not initialized. Use the async context manager or call initialize() first."


class ControlPlane:
    """Tenant lifecycle control plane.

    Example usage:
        # Load from config file
        plane = ControlPlane.from_config("config.yaml")

        # Start HTTP server
        plane.serve(port=8080)

        # Or use directly
        async with plane:
            result = await plane.provisioning.provision(
                ProvisioningRequest(company_name="Acme Auto", tier="demo")
            )
    """

    def __init__(
        self,
        config: Config,
        *,
        database: Database | None = None,
        cluster: ClusterClient | None = None,
        charts: ChartDeployer | None = None,
        tenant_db: TenantDatabaseProvisioner | None = None,
        proxy: ProxyClient | None = None,
        dns: DnsRegistrar | None = None,
        resolver: Resolver | None = None,
        poller: ReadinessPoller | None = None,
    ) -> None:
        """Initialize the control plane with configuration.

        Collaborators passed explicitly take precedence over the configured
        backends. Use `ControlPlane.from_config()` for convenience.
        """
        self.config = config
        self._db = database
        self._cluster = cluster
        self._charts = charts
        self._tenant_db = tenant_db
        self._proxy = proxy
        self._dns = dns
        self._resolver = resolver
        self._poller = poller
        self._tenants: TenantStore | None = None
        self._provisioning: ProvisioningOrchestrator | None = None
        self._lifecycle: TenantLifecycleService | None = None
        self._domains: DomainService | None = None
        self._migration: MigrationOrchestrator | None = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, path: str | Path) -> "ControlPlane":
        """Create a control plane from a YAML or JSON configuration file."""
        return cls(Config.from_file(path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "ControlPlane":
        """Create a control plane from a configuration dictionary."""
        return cls(Config.from_dict(config_dict))

    async def initialize(self) -> None:
        """Create backends and services on first use.

        Uses a lock to prevent concurrent initialization.
        """
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            await self._do_initialize()

    def _create_backends(self) -> None:
        backends = self.config.backends
        base_domain = self.config.provisioning.base_domain

        if self._db is None:
            db_config = self.config.storage.database
            self._db = create_database(db_config.backend, path=db_config.path)

        if self._cluster is None:
            self._cluster = create_cluster_client(backends.cluster.backend, **backends.cluster.options())

        if self._charts is None:
            options = backends.charts.options()
            if backends.charts.backend == "memory" and backends.cluster.backend == "memory":
                # Let the fake chart tool materialize workloads into the fake cluster
                options.setdefault("cluster", self._cluster)
            self._charts = create_chart_deployer(backends.charts.backend, **options)

        if self._tenant_db is None:
            options = backends.tenant_db.options()
            options.setdefault("host", self.config.shared_instance.postgres_host)
            options.setdefault("port", self.config.shared_instance.postgres_port)
            self._tenant_db = create_tenant_db_provisioner(backends.tenant_db.backend, **options)

        if self._proxy is None:
            options = backends.proxy.options()
            options.setdefault("base_domain", base_domain)
            self._proxy = create_proxy_client(backends.proxy.backend, **options)

        if self._dns is None and backends.dns is not None:
            options = backends.dns.options()
            options.setdefault("base_domain", base_domain)
            self._dns = create_dns_registrar(backends.dns.backend, **options)

        if self._resolver is None:
            self._resolver = create_resolver(backends.resolver.backend, **backends.resolver.options())

    async def _do_initialize(self) -> None:
        """Perform actual initialization (called under lock)."""
        with Timer() as timer:
            logger.info("Initializing control plane backends")
            self._create_backends()
            assert self._db is not None and self._cluster is not None and self._charts is not None
            assert self._tenant_db is not None and self._resolver is not None

            self._tenants = TenantStore(self._db)
            await self._tenants.ensure_schema()
            verifications = DomainVerificationStore(self._db)
            await verifications.ensure_schema()

            self._provisioning = ProvisioningOrchestrator(
                self.config,
                self._cluster,
                self._charts,
                self._tenants,
                proxy=self._proxy,
                dns=self._dns,
                poller=self._poller,
            )
            self._lifecycle = TenantLifecycleService(
                self.config,
                self._tenants,
                self._cluster,
                self._tenant_db,
                self._provisioning,
                proxy=self._proxy,
                verifications=verifications,
            )
            self._domains = DomainService(
                self.config,
                self._tenants,
                verifications,
                self._resolver,
                self._cluster,
                proxy=self._proxy,
            )
            self._migration = MigrationOrchestrator(
                self.config,
                self._cluster,
                self._tenant_db,
                self._provisioning,
                self._tenants,
                proxy=self._proxy,
            )
            self._initialized = True

        logger.info("Control plane initialized", duration_ms=timer.duration_ms)
        emit_timer("control_plane.init", timer.duration_ms)

    @property
    def db(self) -> Database:
        """Get the control-plane database."""
        if self._db is None:
            raise RuntimeError(NOT_INITIALIZED)
        return self._db

    @property
    def cluster(self) -> ClusterClient:
        if self._cluster is None:
            raise RuntimeError(NOT_INITIALIZED)
        return self._cluster

    @property
    def tenants(self) -> TenantStore:
        """Get the tenant registry."""
        if self._tenants is None:
            raise RuntimeError(NOT_INITIALIZED)
        return self._tenants

    @property
    def provisioning(self) -> ProvisioningOrchestrator:
        """Get the provisioning orchestrator."""
        if self._provisioning is None:
            raise RuntimeError(NOT_INITIALIZED)
        return self._provisioning

    @property
    def lifecycle(self) -> TenantLifecycleService:
        """Get the tenant lifecycle service."""
        if self._lifecycle is None:
            raise RuntimeError(NOT_INITIALIZED)
        return self._lifecycle

    @property
    def domains(self) -> DomainService:
        """Get the domain verification service."""
        if self._domains is None:
            raise RuntimeError(NOT_INITIALIZED)
        return self._domains

    @property
    def migration(self) -> MigrationOrchestrator:
        """Get the migration orchestrator."""
        if self._migration is None:
            raise RuntimeError(NOT_INITIALIZED)
        return self._migration

    def serve(
        self,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        """Start the HTTP server.

        Args:
            host: Host to bind to (defaults to config value)
            port: Port to bind to (defaults to config value)
        """
        import uvicorn

        from tenancy_core.server.app import create_app

        configure_logging(self.config.logging.level, format=self.config.logging.format)
        app = create_app(self)
        uvicorn.run(
            app,
            host=host or self.config.server.host,
            port=port or self.config.server.port,
        )

    async def close(self) -> None:
        """Release the control-plane database connection."""
        if self._db is not None:
            await self._db.close()

    async def __aenter__(self) -> "ControlPlane":
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
