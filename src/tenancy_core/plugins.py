"""Plugin discovery via Python entry points."""

from importlib.metadata import entry_points
from typing import Any

from tenancy_core.protocols import (
    ChartDeployer,
    ClusterClient,
    Database,
    DnsRegistrar,
    ProxyClient,
    Resolver,
    TenantDatabaseProvisioner,
)

BACKEND_GROUPS = {
    "database": "tenancy_core.backends.database",
    "cluster": "tenancy_core.backends.cluster",
    "charts": "tenancy_core.backends.charts",
    "tenant_db": "tenancy_core.backends.tenant_db",
    "proxy": "tenancy_core.backends.proxy",
    "dns": "tenancy_core.backends.dns",
    "resolver": "tenancy_core.backends.resolver",
}


def discover_backends(group: str) -> dict[str, Any]:
    """Discover all registered backends for a given group.

    Args:
        group: The backend group name (cluster, charts, tenant_db, ...)

    Returns:
        Dictionary mapping backend names to their classes
    """
    full_group = BACKEND_GROUPS.get(group, group)
    eps = entry_points(group=full_group)
    return {ep.name: ep.load() for ep in eps}


def get_backend(group: str, name: str) -> Any:
    """Get a specific backend class by group and name.

    Args:
        group: The backend group name
        name: The backend name (e.g., "kubernetes", "memory")

    Returns:
        The backend class

    Raises:
        ValueError: If the backend is not found
    """
    backends = discover_backends(group)
    if name not in backends:
        available = ", ".join(sorted(backends.keys())) or "(none)"
        raise ValueError(
            f"Backend '{name}' not found in group '{group}'. Available: {available}"
        )
    return backends[name]


def create_database(backend: str, **kwargs: Any) -> Database:
    """Create the control-plane Database (e.g. "sqlite")."""
    return get_backend("database", backend)(**kwargs)


def create_cluster_client(backend: str, **kwargs: Any) -> ClusterClient:
    """Create a ClusterClient (e.g. "kubernetes", "memory")."""
    return get_backend("cluster", backend)(**kwargs)


def create_chart_deployer(backend: str, **kwargs: Any) -> ChartDeployer:
    """Create a ChartDeployer (e.g. "helm", "memory")."""
    return get_backend("charts", backend)(**kwargs)


def create_tenant_db_provisioner(backend: str, **kwargs: Any) -> TenantDatabaseProvisioner:
    """Create a TenantDatabaseProvisioner (e.g. "postgres", "memory")."""
    return get_backend("tenant_db", backend)(**kwargs)


def create_proxy_client(backend: str, **kwargs: Any) -> ProxyClient:
    """Create a ProxyClient (e.g. "npm", "memory")."""
    return get_backend("proxy", backend)(**kwargs)


def create_dns_registrar(backend: str, **kwargs: Any) -> DnsRegistrar:
    """Create a DnsRegistrar (e.g. "cloudflare", "memory")."""
    return get_backend("dns", backend)(**kwargs)


def create_resolver(backend: str, **kwargs: Any) -> Resolver:
    """Create a Resolver (e.g. "doh", "memory")."""
    return get_backend("resolver", backend)(**kwargs)
